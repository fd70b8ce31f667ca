"""Application services for carts, checkout, orders and payments."""
