"""Shipping reconciliation service: ShipStation, Shopify and UPS."""

__version__ = "1.0.0"
