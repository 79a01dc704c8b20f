"""Storefront backend: catalog, session carts and stock-safe checkout."""

__version__ = "1.0.0"
