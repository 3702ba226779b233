"""Gateway response classification shared by every step of the 3DS flow."""

from collections.abc import Mapping

from pincer_payments.domain.errors import DECLINED_MESSAGE
from pincer_payments.domain.outcomes import (
    Approved,
    ChallengeRequired,
    Declined,
    GatewayError,
    GatewayOutcome,
    MethodRequired,
)

APPROVED_ISO_CODE = "00"
METHOD_MESSAGE = "3D_SECURE_2_METHOD"
CHALLENGE_MESSAGES = frozenset({"3D_SECURE_CHALLENGE", "3D_SECURE_2_CHALLENGE"})
ERROR_RESPONSE_CODE = "Error"


def classify(
    response: Mapping[str, object], *, azul_order_id: str | None = None
) -> GatewayOutcome:
    """Map a raw gateway response to a payment outcome.

    Precedence: approval code, method step, challenge step, gateway error,
    then decline. ``azul_order_id`` is used when the response omits its own.
    """
    order_id = _text(response, "AzulOrderId") or (azul_order_id or "")
    message = _text(response, "ResponseMessage")

    if _text(response, "IsoCode") == APPROVED_ISO_CODE:
        return Approved(
            authorization_code=_text(response, "AuthorizationCode"),
            azul_order_id=order_id,
            custom_order_id=_text(response, "CustomOrderId"),
            message=message,
            rrn=_text(response, "RRN"),
            ticket=_text(response, "Ticket"),
        )
    if message == METHOD_MESSAGE:
        method = _nested(response, "ThreeDSMethod")
        return MethodRequired(
            azul_order_id=order_id,
            method_form=_text(method, "MethodForm") or _text(response, "MethodForm"),
        )
    if message in CHALLENGE_MESSAGES:
        challenge = _nested(response, "ThreeDSChallenge")
        return ChallengeRequired(
            azul_order_id=order_id,
            redirect_url=(
                _text(response, "RedirectUrl")
                or _text(challenge, "RedirectPostUrl")
            ),
            redirect_post_data=(
                _text(response, "RedirectPostData") or _text(challenge, "CReq")
            ),
        )
    if _text(response, "ResponseCode") == ERROR_RESPONSE_CODE:
        return GatewayError(
            description=_text(response, "ErrorDescription") or message
        )
    return Declined(
        iso_code=_text(response, "IsoCode"),
        message=message or _text(response, "ErrorDescription") or DECLINED_MESSAGE,
    )


def _text(payload: Mapping[str, object], key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    return str(value)


def _nested(payload: Mapping[str, object], key: str) -> Mapping[str, object]:
    value = payload.get(key)
    if isinstance(value, Mapping):
        return value
    return {}
