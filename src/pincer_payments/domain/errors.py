"""Error taxonomy for the payment flow."""

SYSTEM_ERROR_MESSAGE = "Error del sistema"
DECLINED_MESSAGE = "Tarjeta declinada"
INCOMPLETE_MESSAGE = "No se pudo completar el pago"


class PaymentError(Exception):
    """Base class for failures surfaced to platform clients."""

    status_code = 500
    code = "payment_error"
    user_message = SYSTEM_ERROR_MESSAGE

    def public_body(self) -> dict[str, str]:
        """Return the JSON body shown to the client."""
        return {"error": self.user_message, "code": self.code}


class InvalidRequest(PaymentError):
    """Missing or malformed input, rejected before any external call."""

    status_code = 400
    code = "invalid_request"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.user_message = detail


class GatewayFailure(PaymentError):
    """Transport-level failure talking to the card gateway."""

    status_code = 502
    code = "gateway_failure"


class GatewayTimeout(GatewayFailure):
    code = "gateway_timeout"


class GatewayUnreachable(GatewayFailure):
    code = "gateway_unreachable"


class GatewayMalformedResponse(GatewayFailure):
    code = "gateway_malformed_response"


class SessionNotFound(PaymentError):
    """A request referenced an unknown or expired payment session."""

    status_code = 404
    code = "session_not_found"
    user_message = INCOMPLETE_MESSAGE


class StoreWriteFailure(PaymentError):
    """The session store rejected a write."""

    code = "store_write_failure"


class StoreReadFailure(PaymentError):
    """The session store could not be queried."""

    code = "store_read_failure"
