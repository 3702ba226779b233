"""Azul card gateway client over mutual TLS."""

import base64
import logging
import ssl
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import httpx

from pincer_payments.domain.errors import (
    GatewayMalformedResponse,
    GatewayTimeout,
    GatewayUnreachable,
)

PROCESS_METHOD = "processthreedsmethod"
PROCESS_CHALLENGE = "processthreedschallenge"

_logger = logging.getLogger(__name__)


class GatewayClient(Protocol):
    """Interface for card gateway authorization calls."""

    async def authorize(
        self, payload: dict[str, object], action: str | None = None
    ) -> dict[str, object]:
        """Send a payload to the gateway and return its raw JSON response."""


@dataclass(frozen=True)
class GatewayTlsConfig:
    """Client certificate material for the gateway, loaded once at startup."""

    certificate_pem: bytes
    private_key_pem: bytes

    @classmethod
    def from_files(cls, cert_path: str, key_path: str) -> "GatewayTlsConfig":
        """Read PEM encoded certificate chain and key from disk."""
        return cls(
            certificate_pem=Path(cert_path).read_bytes(),
            private_key_pem=Path(key_path).read_bytes(),
        )

    @classmethod
    def from_base64(cls, cert_b64: str, key_b64: str) -> "GatewayTlsConfig":
        """Decode base64 wrapped PEM material, as stored in env vars."""
        return cls(
            certificate_pem=base64.b64decode(cert_b64),
            private_key_pem=base64.b64decode(key_b64),
        )

    def ssl_context(self) -> ssl.SSLContext:
        """Build a verifying SSL context presenting the client certificate."""
        context = ssl.create_default_context()
        # load_cert_chain only accepts paths.
        with tempfile.TemporaryDirectory() as directory:
            cert_file = Path(directory) / "chain.pem"
            key_file = Path(directory) / "key.pem"
            cert_file.write_bytes(self.certificate_pem)
            key_file.write_bytes(self.private_key_pem)
            key_file.chmod(0o600)
            context.load_cert_chain(certfile=str(cert_file), keyfile=str(key_file))
        return context


@dataclass
class HttpxAzulGatewayClient(GatewayClient):
    """HTTPX-backed Azul client reusing one keep-alive connection pool."""

    url: str
    auth1: str
    auth2: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 9.5

    @classmethod
    def create(  # noqa: PLR0913
        cls,
        url: str,
        auth1: str,
        auth2: str,
        tls: GatewayTlsConfig | None,
        timeout_seconds: float = 9.5,
    ) -> "HttpxAzulGatewayClient":
        """Create a gateway client with a managed httpx session."""
        verify: ssl.SSLContext | bool = tls.ssl_context() if tls else True
        return cls(
            url=url,
            auth1=auth1,
            auth2=auth2,
            http_client=httpx.AsyncClient(verify=verify),
            timeout_seconds=timeout_seconds,
        )

    async def authorize(
        self, payload: dict[str, object], action: str | None = None
    ) -> dict[str, object]:
        """POST a payload to the gateway, optionally for a 3DS follow-up step."""
        url = _with_action(self.url, action)
        try:
            response = await self.http_client.post(
                url,
                json=payload,
                headers={
                    "Auth1": self.auth1,
                    "Auth2": self.auth2,
                    "Content-Type": "application/json",
                },
                timeout=self.timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            _logger.warning("Azul %s timed out", action or "sale")
            raise GatewayTimeout("Azul request timed out") from exc
        except httpx.HTTPError as exc:
            _logger.warning("Azul %s transport error: %s", action or "sale", exc)
            raise GatewayUnreachable("Azul request failed") from exc

        try:
            body = response.json()
        except ValueError as exc:
            _logger.error(
                "Azul %s returned non-JSON body (status=%s): %s",
                action or "sale",
                response.status_code,
                response.text[:200],
            )
            raise GatewayMalformedResponse("Invalid JSON from Azul") from exc
        if not isinstance(body, dict):
            raise GatewayMalformedResponse("Unexpected JSON shape from Azul")
        return body

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _with_action(url: str, action: str | None) -> str:
    """Append a bare gateway action to the endpoint query string."""
    if not action:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{action}"
