"""HTTP layer: routers, schemas, auth and middleware."""
