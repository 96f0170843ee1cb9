"""
Configuration management for the shipping reconciliation service
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Shipping Reconciliation Service"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Database
    database_url: str = "sqlite:///./shipping.db"

    # ShipStation (legacy V1 uses key/secret basic auth, V2 uses an API key)
    shipstation_api_key: str = ""
    shipstation_api_secret: str = ""
    shipstation_v2_api_key: Optional[str] = None
    shipstation_base_url: str = "https://ssapi.shipstation.com"
    shipstation_v2_base_url: str = "https://api.shipstation.com"

    # Shopify
    shopify_store_url: str = ""
    shopify_access_token: str = ""
    shopify_api_version: str = "2024-10"

    # UPS
    ups_client_id: str = ""
    ups_client_secret: str = ""
    ups_account_nda: str = "R1833C066"
    ups_account_ground: str = "J9299A036"
    ups_token_url: str = "https://onlinetools.ups.com/security/v1/oauth/token"
    ups_tracking_url: str = "https://onlinetools.ups.com/api/track/v1/details"
    ups_transaction_source: str = "PioneerFeeders"

    # Rate limits (minimum seconds between calls)
    shipstation_min_interval: float = 1.5  # ~40/min
    shopify_min_interval: float = 0.55  # ~2/sec with buffer
    ups_min_interval: float = 0.15

    # Delivery status poller
    tracking_poll_hour: int = 8
    tracking_poll_minute: int = 0
    tracking_poll_timezone: str = "America/New_York"
    tracking_poll_window_days: int = 30
    # Only one worker process should run the daily poll
    run_scheduler: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
