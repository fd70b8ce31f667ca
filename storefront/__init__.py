"""Storefront API: cart, checkout, orders and payment reconciliation."""
