"""Card payment and 3-D Secure authentication flow."""

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import UUID, uuid4

from pincer_payments.adapters.azul_gateway_client import (
    PROCESS_CHALLENGE,
    PROCESS_METHOD,
    GatewayClient,
)
from pincer_payments.domain.checkout import ClientContext, PaymentRequest
from pincer_payments.domain.errors import (
    INCOMPLETE_MESSAGE,
    InvalidRequest,
    PaymentError,
    SessionNotFound,
    StoreReadFailure,
    StoreWriteFailure,
)
from pincer_payments.domain.outcomes import Declined, GatewayError, GatewayOutcome
from pincer_payments.domain.payments import (
    PaymentSession,
    PaymentStatus,
    parse_session_id,
    predecessors_of,
)
from pincer_payments.services.classification import classify
from pincer_payments.services.tasks import TaskScheduler

METHOD_RECEIVED = "RECEIVED"
METHOD_NOT_RECEIVED = "EXPECTED_BUT_NOT_RECEIVED"

_DEFAULT_LANGUAGE = "es-DO"
_DEFAULT_COLOR_DEPTH = "24"
_DEFAULT_SCREEN_WIDTH = "1920"
_DEFAULT_SCREEN_HEIGHT = "1080"
_DEFAULT_TIMEZONE_OFFSET = "240"
_DEFAULT_ACCEPT_HEADER = "text/html"
_DEFAULT_USER_AGENT = "Mozilla/5.0"
_CHALLENGE_INDICATOR = "03"

_WHITESPACE = re.compile(r"\s")

_logger = logging.getLogger(__name__)


class PaymentSessionRepository(Protocol):
    """Persistence interface for 3DS payment sessions."""

    def create(self, session: PaymentSession) -> UUID:
        """Insert a new session row and return its id."""

    def get(self, session_id: UUID) -> PaymentSession | None:
        """Return a session by id, if present."""

    def patch(
        self,
        session_id: UUID,
        fields: dict[str, object],
        expected_statuses: Iterable[PaymentStatus] | None = None,
    ) -> None:
        """Apply a partial update, optionally only from the given statuses."""

    def delete_stale(self, older_than: datetime) -> None:
        """Delete non-approved sessions created before ``older_than``."""


@dataclass(frozen=True)
class PaymentResult:
    """Outcome of a gateway round trip bound to its session."""

    session_id: UUID
    outcome: GatewayOutcome

    def as_response(self) -> dict[str, object]:
        return self.outcome.as_response(self.session_id)


@dataclass(frozen=True)
class ChallengeCompletion:
    """Final result of the challenge callback, rendered back to the browser."""

    session_id: UUID
    approved: bool
    result: dict[str, str]


@dataclass(frozen=True)
class SessionStatusView:
    """Client-safe view of a session for status polling."""

    status: PaymentStatus
    method_received: bool
    final_response: dict[str, str] | None

    def as_response(self) -> dict[str, object]:
        return {
            "status": self.status.value,
            "methodReceived": self.method_received,
            "finalResponse": self.final_response,
        }


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class PaymentService:
    """Coordinates the gateway and the session store across 3DS round trips."""

    gateway: GatewayClient
    repository: PaymentSessionRepository
    merchant_id: str
    api_base_url: str
    ecommerce_url: str
    session_retention: timedelta = timedelta(minutes=15)
    clock: Callable[[], datetime] = field(default=_utc_now)

    async def initiate(
        self,
        request: PaymentRequest,
        client: ClientContext,
        tasks: TaskScheduler,
    ) -> PaymentResult:
        """Start a card authorization and persist its session."""
        _require_card_fields(request)
        session_id = uuid4()
        tasks.add_task(self._purge_stale_sessions)

        payload = self._sale_payload(session_id, request, client)
        response = await self.gateway.authorize(payload)
        outcome = classify(response)

        now = self.clock()
        session = PaymentSession(
            session_id=session_id,
            azul_order_id=_optional_text(response.get("AzulOrderId")),
            custom_order_id=request.custom_order_id or "",
            status=PaymentStatus.INITIATED,
            method_notification_received=False,
            gateway_response=response,
            created_at=now,
            updated_at=now,
        )
        try:
            self.repository.create(session)
        except StoreWriteFailure:
            raise
        except Exception as exc:
            _logger.exception("Failed to create 3DS session %s", session_id)
            raise StoreWriteFailure("Failed to create payment session") from exc

        _logger.info("Payment %s initiated: %s", session_id, outcome.status.value)
        tasks.add_task(self._record_outcome, session_id, outcome.status, None)
        return PaymentResult(session_id=session_id, outcome=outcome)

    def notify_method(self, raw_session_id: str | None) -> None:
        """Record that the issuer finished the 3DS method step."""
        session_id = parse_session_id(raw_session_id)
        if session_id is None:
            _logger.warning("Ignoring method notification for malformed session")
            return
        try:
            self.repository.patch(session_id, {"method_notification_received": True})
        except Exception:
            _logger.exception("Failed to record method notification %s", session_id)

    async def continue_authorization(
        self,
        raw_session_id: str | None,
        azul_order_id: str | None,
        tasks: TaskScheduler,
    ) -> PaymentResult:
        """Resume authorization after the method step or its timeout."""
        if not raw_session_id or not azul_order_id:
            raise InvalidRequest("Missing sessionId or azulOrderId")
        session_id = parse_session_id(raw_session_id)
        if session_id is None:
            raise InvalidRequest("Invalid sessionId")

        method_received = self._method_received(session_id)
        payload: dict[str, object] = {
            "Channel": "EC",
            "Store": self.merchant_id,
            "AzulOrderId": azul_order_id,
            "MethodNotificationStatus": (
                METHOD_RECEIVED if method_received else METHOD_NOT_RECEIVED
            ),
        }
        response = await self.gateway.authorize(payload, PROCESS_METHOD)
        outcome = classify(response, azul_order_id=azul_order_id)

        _logger.info(
            "Payment %s continued (method=%s): %s",
            session_id,
            payload["MethodNotificationStatus"],
            outcome.status.value,
        )
        tasks.add_task(self._record_outcome, session_id, outcome.status, response)
        return PaymentResult(session_id=session_id, outcome=outcome)

    async def complete_challenge(
        self,
        raw_session_id: str | None,
        cres: str,
        tasks: TaskScheduler,
    ) -> ChallengeCompletion:
        """Finalize authorization with the issuer's challenge result.

        Raises ``InvalidRequest`` for a malformed session id. Every other
        failure degrades to a declined completion so the issuer-hosted page
        always receives a well-formed answer.
        """
        session_id = parse_session_id(raw_session_id)
        if session_id is None:
            raise InvalidRequest("Invalid session")

        try:
            session = self.repository.get(session_id)
            if session is None:
                _logger.warning("Challenge callback for unknown session %s", session_id)
                return ChallengeCompletion(
                    session_id=session_id,
                    approved=False,
                    result={"message": INCOMPLETE_MESSAGE, "reason": "not_found"},
                )
            if session.status.is_terminal:
                _logger.info(
                    "Challenge callback replayed for finished session %s (%s)",
                    session_id,
                    session.status.value,
                )
                return _stored_completion(session)
            response = await self.gateway.authorize(
                {
                    "Channel": "EC",
                    "Store": self.merchant_id,
                    "AzulOrderId": session.azul_order_id or "",
                    "CRes": cres,
                },
                PROCESS_CHALLENGE,
            )
        except Exception as exc:
            _logger.exception("3DS challenge callback failed for %s", session_id)
            tasks.add_task(
                self._record_outcome,
                session_id,
                PaymentStatus.ERROR,
                None,
                {"cres": cres},
            )
            return ChallengeCompletion(
                session_id=session_id,
                approved=False,
                result={"message": INCOMPLETE_MESSAGE, "reason": "error"},
            )

        outcome = classify(response, azul_order_id=session.azul_order_id)
        if not outcome.status.is_terminal:
            outcome = Declined(
                iso_code=str(response.get("IsoCode") or ""),
                message=str(response.get("ResponseMessage") or INCOMPLETE_MESSAGE),
            )
        _logger.info("Payment %s challenge: %s", session_id, outcome.status.value)
        tasks.add_task(
            self._record_outcome,
            session_id,
            outcome.status,
            response,
            {"cres": cres},
        )
        return ChallengeCompletion(
            session_id=session_id,
            approved=outcome.status is PaymentStatus.APPROVED,
            result=_challenge_result(outcome, response),
        )

    def get_status(self, raw_session_id: str | None) -> SessionStatusView:
        """Return the client-safe status of a session."""
        session_id = parse_session_id(raw_session_id)
        if session_id is None:
            raise InvalidRequest("Missing session")
        try:
            session = self.repository.get(session_id)
        except PaymentError:
            raise
        except Exception as exc:
            _logger.exception("Failed to read 3DS session %s", session_id)
            raise StoreReadFailure("Failed to read payment session") from exc
        if session is None:
            raise SessionNotFound(str(session_id))

        final_response = None
        if session.status.is_terminal and session.gateway_response:
            final_response = {
                "isoCode": str(session.gateway_response.get("IsoCode") or ""),
                "message": str(session.gateway_response.get("ResponseMessage") or ""),
                "responseCode": str(
                    session.gateway_response.get("ResponseCode") or ""
                ),
            }
        return SessionStatusView(
            status=session.status,
            method_received=session.method_notification_received,
            final_response=final_response,
        )

    def _sale_payload(
        self, session_id: UUID, request: PaymentRequest, client: ClientContext
    ) -> dict[str, object]:
        """Build the initial 3DS-aware sale request."""
        browser = request.browser_info
        base_url = self.api_base_url.rstrip("/")
        return {
            "Channel": "EC",
            "Store": self.merchant_id,
            "CardNumber": _WHITESPACE.sub("", str(request.card_number)),
            "Expiration": str(request.expiration),
            "CVC": str(request.cvc),
            "PosInputMode": "E-Commerce",
            "TrxType": "Sale",
            "Amount": str(request.amount),
            "Itbis": str(request.itbis or "000"),
            "CurrencyPosCode": "$",
            "Payments": "1",
            "Plan": "0",
            "AcquirerRefData": "1",
            "RRN": None,
            "CustomerServicePhone": "",
            "OrderNumber": "",
            "ECommerceUrl": self.ecommerce_url,
            "CustomOrderId": request.custom_order_id or "",
            "DataVaultToken": "",
            "SaveToDataVault": "0",
            "ForceNo3DS": "0",
            "AltMerchantName": "",
            "CardHolderInfo": {
                "Name": request.customer_name or "",
                "PhoneMobile": request.customer_phone or "",
                "Email": request.customer_email or "",
            },
            "ThreeDSAuth": {
                "TermUrl": f"{base_url}/api/3ds/callback?session={session_id}",
                "MethodNotificationUrl": (
                    f"{base_url}/api/3ds/method-notify?session={session_id}"
                ),
                "RequestChallengeIndicator": _CHALLENGE_INDICATOR,
            },
            "BrowserInfo": {
                "AcceptHeader": _pick(
                    browser and browser.accept_header,
                    client.accept_header,
                    _DEFAULT_ACCEPT_HEADER,
                ),
                "IPAddress": client.ip_address,
                "Language": _pick(browser and browser.language, _DEFAULT_LANGUAGE),
                "ColorDepth": _pick(
                    browser and browser.color_depth, _DEFAULT_COLOR_DEPTH
                ),
                "ScreenWidth": _pick(
                    browser and browser.screen_width, _DEFAULT_SCREEN_WIDTH
                ),
                "ScreenHeight": _pick(
                    browser and browser.screen_height, _DEFAULT_SCREEN_HEIGHT
                ),
                "TimeZone": _pick(
                    browser and browser.time_zone, _DEFAULT_TIMEZONE_OFFSET
                ),
                "UserAgent": _pick(
                    browser and browser.user_agent,
                    client.user_agent,
                    _DEFAULT_USER_AGENT,
                ),
                "JavaScriptEnabled": (
                    "false"
                    if browser is not None and browser.javascript_enabled is False
                    else "true"
                ),
            },
        }

    def _method_received(self, session_id: UUID) -> bool:
        try:
            session = self.repository.get(session_id)
        except Exception as exc:
            _logger.warning("Method flag lookup failed for %s: %s", session_id, exc)
            return False
        if session is None:
            raise SessionNotFound(str(session_id))
        return session.method_notification_received

    def _record_outcome(
        self,
        session_id: UUID,
        status: PaymentStatus,
        response: dict[str, object] | None,
        extra: dict[str, object] | None = None,
    ) -> None:
        """Store the latest gateway response and advance the status, best-effort."""
        fields = dict(extra or {})
        if response is not None:
            fields["gateway_response"] = response
        try:
            if fields:
                self.repository.patch(session_id, fields)
            self.repository.patch(
                session_id,
                {"status": status.value},
                expected_statuses=predecessors_of(status),
            )
        except Exception:
            _logger.exception(
                "Failed to record %s for session %s", status.value, session_id
            )

    def _purge_stale_sessions(self) -> None:
        cutoff = self.clock() - self.session_retention
        try:
            self.repository.delete_stale(cutoff)
        except Exception:
            _logger.exception("Failed to purge stale 3DS sessions")


def _require_card_fields(request: PaymentRequest) -> None:
    """Reject requests without the card data the gateway needs."""
    if (
        not request.card_number
        or not request.expiration
        or not request.cvc
        or not request.amount
    ):
        raise InvalidRequest(
            "Missing required fields: cardNumber, expiration, cvc, amount"
        )


def _challenge_result(
    outcome: GatewayOutcome, response: dict[str, object]
) -> dict[str, str]:
    if isinstance(outcome, GatewayError):
        return {"message": INCOMPLETE_MESSAGE, "isoCode": ""}
    return _result_fields(response)


def _stored_completion(session: PaymentSession) -> ChallengeCompletion:
    """Rebuild the completion of a session that already reached a final state."""
    if session.status is PaymentStatus.ERROR:
        result = {"message": INCOMPLETE_MESSAGE, "isoCode": ""}
    else:
        result = _result_fields(session.gateway_response or {})
    return ChallengeCompletion(
        session_id=session.session_id,
        approved=session.status is PaymentStatus.APPROVED,
        result=result,
    )


def _result_fields(response: dict[str, object]) -> dict[str, str]:
    return {
        "authorizationCode": str(response.get("AuthorizationCode") or ""),
        "azulOrderId": str(response.get("AzulOrderId") or ""),
        "customOrderId": str(response.get("CustomOrderId") or ""),
        "message": str(response.get("ResponseMessage") or ""),
        "rrn": str(response.get("RRN") or ""),
        "ticket": str(response.get("Ticket") or ""),
        "isoCode": str(response.get("IsoCode") or ""),
    }


def _pick(*candidates: object) -> str:
    for candidate in candidates:
        if candidate not in (None, ""):
            return str(candidate)
    return ""


def _optional_text(value: object) -> str | None:
    if value in (None, ""):
        return None
    return str(value)
