# rocketcart/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Env vars (.env), all optional:
      - DATABASE_URL (where cart snapshots are persisted)
      - INVENTORY_API_URL (base URL of the products/stock service)
      - INVENTORY_TIMEOUT_SECONDS
      - CART_STORAGE_KEY (well-known key of the cart snapshot)
      - CART_REGISTRY_MAX_SIZE
      - LOG_LEVEL
    """

    PROJECT_NAME: str = "RocketCart"
    API_V1_STR: str = "/api/v1"

    # Snapshot storage
    DATABASE_URL: str = "sqlite:///./rocketcart.db"
    CART_STORAGE_KEY: str = "@RocketShoes:cart"
    # Carts kept open in memory at once (least recently used are dropped)
    CART_REGISTRY_MAX_SIZE: int = 1024

    # Inventory / catalog service
    INVENTORY_API_URL: str = "http://localhost:3333"
    INVENTORY_TIMEOUT_SECONDS: float = 10.0

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
