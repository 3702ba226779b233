"""Supabase-backed 3DS payment session repository."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from pincer_payments.domain.errors import StoreWriteFailure
from pincer_payments.domain.payments import PaymentSession, PaymentStatus
from pincer_payments.services.payments import PaymentSessionRepository

_TABLE = "sessions_3ds"
_COLUMNS = (
    "session_id, azul_order_id, custom_order_id, status, "
    "method_notification_received, gateway_response, cres, created_at, updated_at"
)


@dataclass
class SupabasePaymentSessionRepository(PaymentSessionRepository):
    """Supabase implementation for payment sessions."""

    client: Client

    def create(self, session: PaymentSession) -> UUID:
        """Insert a session row and return its id."""
        response = (
            self.client.table(_TABLE)
            .insert(
                {
                    "session_id": str(session.session_id),
                    "azul_order_id": session.azul_order_id,
                    "custom_order_id": session.custom_order_id,
                    "status": session.status.value,
                    "method_notification_received": (
                        session.method_notification_received
                    ),
                    "gateway_response": session.gateway_response,
                    "created_at": session.created_at.isoformat(),
                    "updated_at": session.updated_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise StoreWriteFailure("Failed to create payment session")
        return UUID(str(response.data[0]["session_id"]))

    def get(self, session_id: UUID) -> PaymentSession | None:
        """Return a session by id, if present."""
        response = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .eq("session_id", str(session_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_session(response.data[0])

    def patch(
        self,
        session_id: UUID,
        fields: dict[str, object],
        expected_statuses: Iterable[PaymentStatus] | None = None,
    ) -> None:
        """Update the given columns and refresh updated_at."""
        query = (
            self.client.table(_TABLE)
            .update({**fields, "updated_at": datetime.now(tz=UTC).isoformat()})
            .eq("session_id", str(session_id))
        )
        if expected_statuses is not None:
            query = query.in_(
                "status", sorted(status.value for status in expected_statuses)
            )
        query.execute()

    def delete_stale(self, older_than: datetime) -> None:
        """Delete sessions created before the cutoff that never got approved."""
        (
            self.client.table(_TABLE)
            .delete()
            .lt("created_at", older_than.isoformat())
            .neq("status", PaymentStatus.APPROVED.value)
            .execute()
        )


def _parse_session(row: dict[str, object]) -> PaymentSession:
    gateway_response = row.get("gateway_response")
    return PaymentSession(
        session_id=UUID(str(row["session_id"])),
        azul_order_id=_optional_str(row.get("azul_order_id")),
        custom_order_id=str(row.get("custom_order_id") or ""),
        status=PaymentStatus(row.get("status") or PaymentStatus.INITIATED.value),
        method_notification_received=row.get("method_notification_received") is True,
        gateway_response=gateway_response if isinstance(gateway_response, dict) else {},
        created_at=_parse_timestamp(row.get("created_at")),
        updated_at=_parse_timestamp(row.get("updated_at")),
        cres=_optional_str(row.get("cres")),
    )


def _parse_timestamp(raw: object) -> datetime:
    if isinstance(raw, str) and raw:
        return datetime.fromisoformat(raw)
    return datetime.min.replace(tzinfo=UTC)


def _optional_str(value: object) -> str | None:
    if value in (None, ""):
        return None
    return str(value)
