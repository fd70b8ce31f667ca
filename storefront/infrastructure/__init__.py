"""Infrastructure layer: settings, persistence and logging."""
