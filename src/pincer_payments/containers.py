"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from supabase import ClientOptions, create_client

from pincer_payments.adapters.azul_gateway_client import (
    GatewayClient,
    GatewayTlsConfig,
    HttpxAzulGatewayClient,
)
from pincer_payments.adapters.supabase_payment_session_repository import (
    SupabasePaymentSessionRepository,
)
from pincer_payments.config import Settings, resolve_gateway_url
from pincer_payments.services.payments import PaymentService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    gateway_client: GatewayClient
    payment_service: PaymentService
    close_resources: Callable[[], Awaitable[None]]


def load_tls_config(settings: Settings) -> GatewayTlsConfig | None:
    """Load the gateway client certificate from files or base64 env values."""
    if settings.azul_cert_path and settings.azul_key_path:
        return GatewayTlsConfig.from_files(
            settings.azul_cert_path, settings.azul_key_path
        )
    if settings.azul_cert_b64 and settings.azul_private_key_b64:
        return GatewayTlsConfig.from_base64(
            settings.azul_cert_b64, settings.azul_private_key_b64
        )
    return None


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url,
        resolved_settings.supabase_service_key,
        options=ClientOptions(
            postgrest_client_timeout=resolved_settings.store_timeout_seconds
        ),
    )
    session_repository = SupabasePaymentSessionRepository(supabase_client)
    gateway_client = HttpxAzulGatewayClient.create(
        url=resolve_gateway_url(resolved_settings),
        auth1=resolved_settings.azul_auth1,
        auth2=resolved_settings.azul_auth2,
        tls=load_tls_config(resolved_settings),
        timeout_seconds=resolved_settings.gateway_timeout_seconds,
    )
    payment_service = PaymentService(
        gateway=gateway_client,
        repository=session_repository,
        merchant_id=resolved_settings.azul_merchant_id,
        api_base_url=resolved_settings.api_base_url,
        ecommerce_url=resolved_settings.ecommerce_url,
        session_retention=timedelta(
            minutes=resolved_settings.session_retention_minutes
        ),
    )

    async def close_resources() -> None:
        await gateway_client.close()

    return AppContainer(
        settings=resolved_settings,
        gateway_client=gateway_client,
        payment_service=payment_service,
        close_resources=close_resources,
    )
