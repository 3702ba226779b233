"""Domain models for 3-D Secure payment sessions."""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

_SESSION_ID_PATTERN = re.compile(r"^[0-9a-fA-F-]{36}$")


class PaymentStatus(str, Enum):
    """Lifecycle states of a payment session."""

    INITIATED = "initiated"
    METHOD = "3ds_method"
    CHALLENGE = "challenge"
    APPROVED = "approved"
    DECLINED = "declined"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset(
    {PaymentStatus.APPROVED, PaymentStatus.DECLINED, PaymentStatus.ERROR}
)

_ALLOWED_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.INITIATED: frozenset(
        {
            PaymentStatus.METHOD,
            PaymentStatus.CHALLENGE,
            PaymentStatus.APPROVED,
            PaymentStatus.DECLINED,
            PaymentStatus.ERROR,
        }
    ),
    PaymentStatus.METHOD: frozenset(
        {
            PaymentStatus.CHALLENGE,
            PaymentStatus.APPROVED,
            PaymentStatus.DECLINED,
            PaymentStatus.ERROR,
        }
    ),
    PaymentStatus.CHALLENGE: frozenset(
        {PaymentStatus.APPROVED, PaymentStatus.DECLINED, PaymentStatus.ERROR}
    ),
    PaymentStatus.APPROVED: frozenset(),
    PaymentStatus.DECLINED: frozenset(),
    PaymentStatus.ERROR: frozenset(),
}


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    """Return true when a session may move from current to target."""
    return target in _ALLOWED_TRANSITIONS[current]


def predecessors_of(target: PaymentStatus) -> frozenset[PaymentStatus]:
    """Return every status from which target is reachable in one step."""
    return frozenset(
        status
        for status, targets in _ALLOWED_TRANSITIONS.items()
        if target in targets
    )


def parse_session_id(raw: str | None) -> UUID | None:
    """Parse a session id, returning None for anything not shaped like one."""
    if not raw or not _SESSION_ID_PATTERN.match(raw):
        return None
    try:
        return UUID(raw)
    except ValueError:
        return None


@dataclass(frozen=True)
class PaymentSession:
    """Durable record correlating the steps of one payment attempt."""

    session_id: UUID
    azul_order_id: str | None
    custom_order_id: str
    status: PaymentStatus
    method_notification_received: bool
    gateway_response: dict[str, object]
    created_at: datetime
    updated_at: datetime
    cres: str | None = None
