"""Storefront back office — order expiration and inventory reconciliation."""
