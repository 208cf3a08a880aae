# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Postgres connection string, or sqlite:// for local runs)
      - AUTH_JWT_SECRET (HS256 secret used to verify bearer tokens)

    Optional:
      - TAX_RATE, FLAT_SHIPPING_COST, FREE_SHIPPING_THRESHOLD (cart pricing)
      - CORS_ORIGINS (list of allowed frontend origins)
    """

    PROJECT_NAME: str = "Storefront API"
    API_V1_STR: str = "/api/v1"

    DATABASE_URL: str

    # JWT verification (backend-side)
    AUTH_JWT_SECRET: str
    AUTH_JWT_ALG: str = "HS256"

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]

    # Cart pricing
    TAX_RATE: float = 0.08
    FLAT_SHIPPING_COST: float = 10.0
    FREE_SHIPPING_THRESHOLD: float = 150.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
