"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

AZUL_TEST_URL = "https://pruebas.azul.com.do/WebServices/JSON/default.aspx"
AZUL_PRODUCTION_URL = "https://pagos.azul.com.do/WebServices/JSON/default.aspx"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    azul_merchant_id: str
    azul_auth1: str
    azul_auth2: str
    azul_environment: str = "development"
    azul_url: str | None = None
    azul_cert_path: str | None = None
    azul_key_path: str | None = None
    azul_cert_b64: str | None = None
    azul_private_key_b64: str | None = None
    allowed_origin: str = "https://www.pincerweb.com"
    api_base_url: str = "https://www.pincerweb.com"
    frontend_base_url: str = "https://www.pincerweb.com"
    payment_return_path: str = "/"
    ecommerce_url: str = "https://pincerweb.com"
    gateway_timeout_seconds: float = 9.5
    store_timeout_seconds: float = 3.0
    session_retention_minutes: int = 15
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def resolve_gateway_url(settings: Settings) -> str:
    """Return the gateway endpoint for the configured environment."""
    if settings.azul_url:
        return settings.azul_url
    if settings.azul_environment.strip().lower() == "development":
        return AZUL_TEST_URL
    return AZUL_PRODUCTION_URL
