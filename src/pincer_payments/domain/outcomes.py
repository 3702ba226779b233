"""Classified gateway outcomes."""

from dataclasses import dataclass
from uuid import UUID

from pincer_payments.domain.errors import DECLINED_MESSAGE, SYSTEM_ERROR_MESSAGE
from pincer_payments.domain.payments import PaymentStatus


@dataclass(frozen=True)
class Approved:
    """The gateway authorized the transaction."""

    authorization_code: str
    azul_order_id: str
    custom_order_id: str
    message: str
    rrn: str
    ticket: str
    iso_code: str = "00"

    status = PaymentStatus.APPROVED

    def as_response(self, session_id: UUID) -> dict[str, object]:
        return {
            "success": True,
            "approved": True,
            "sessionId": str(session_id),
            "authorizationCode": self.authorization_code,
            "azulOrderId": self.azul_order_id,
            "customOrderId": self.custom_order_id,
            "message": self.message,
            "rrn": self.rrn,
            "ticket": self.ticket,
        }


@dataclass(frozen=True)
class MethodRequired:
    """The issuer wants a hidden-iframe device fingerprinting step."""

    azul_order_id: str
    method_form: str

    status = PaymentStatus.METHOD

    def as_response(self, session_id: UUID) -> dict[str, object]:
        return {
            "approved": False,
            "threeDSMethod": True,
            "sessionId": str(session_id),
            "azulOrderId": self.azul_order_id,
            "methodForm": self.method_form,
        }


@dataclass(frozen=True)
class ChallengeRequired:
    """The issuer wants the cardholder to complete an interactive challenge."""

    azul_order_id: str
    redirect_url: str
    redirect_post_data: str

    status = PaymentStatus.CHALLENGE

    def as_response(self, session_id: UUID) -> dict[str, object]:
        return {
            "approved": False,
            "challengeRequired": True,
            "sessionId": str(session_id),
            "azulOrderId": self.azul_order_id,
            "redirectUrl": self.redirect_url,
            "redirectPostData": self.redirect_post_data,
        }


@dataclass(frozen=True)
class GatewayError:
    """The gateway reported a processing error."""

    description: str

    status = PaymentStatus.ERROR

    def as_response(self, session_id: UUID) -> dict[str, object]:
        return {
            "success": False,
            "approved": False,
            "sessionId": str(session_id),
            "error": self.description,
            "message": SYSTEM_ERROR_MESSAGE,
        }


@dataclass(frozen=True)
class Declined:
    """A business decline with the gateway's own message."""

    iso_code: str
    message: str = DECLINED_MESSAGE

    status = PaymentStatus.DECLINED

    def as_response(self, session_id: UUID) -> dict[str, object]:
        return {
            "success": False,
            "approved": False,
            "sessionId": str(session_id),
            "isoCode": self.iso_code,
            "message": self.message,
        }


GatewayOutcome = Approved | MethodRequired | ChallengeRequired | GatewayError | Declined
