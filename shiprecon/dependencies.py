"""
Shared connector instances

The UPS token cache is process-scoped so every caller reuses one bearer token.
"""
from functools import lru_cache

from shiprecon.connectors import ShipStationConnector, ShopifyConnector, TokenCache, UPSConnector


@lru_cache()
def get_ups_token_cache() -> TokenCache:
    return TokenCache()


@lru_cache()
def get_shipstation_connector() -> ShipStationConnector:
    return ShipStationConnector()


@lru_cache()
def get_shopify_connector() -> ShopifyConnector:
    return ShopifyConnector()


@lru_cache()
def get_ups_connector() -> UPSConnector:
    return UPSConnector(token_cache=get_ups_token_cache())
