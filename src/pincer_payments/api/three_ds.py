"""3-D Secure follow-up endpoints called by the checkout page and the issuer."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import HTMLResponse

from pincer_payments.api.callback_page import render_challenge_page
from pincer_payments.domain.checkout import ContinueRequest
from pincer_payments.domain.errors import InvalidRequest

if TYPE_CHECKING:
    from pincer_payments.containers import AppContainer

router = APIRouter(prefix="/api/3ds", tags=["3ds"])

_logger = logging.getLogger(__name__)

_METHOD_ACK_HTML = "<html><body>OK</body></html>"
_CRES_KEYS = ("cRes", "cres", "CRes")


@router.api_route("/method-notify", methods=["GET", "POST"])
def method_notify(request: Request, session: str | None = None) -> HTMLResponse:
    """Acknowledge the issuer's method notification.

    The issuer does not interpret failures, so anything past the presence
    check answers with the same minimal page.
    """
    if not session:
        return HTMLResponse("Missing session", status_code=400)
    container: AppContainer = request.app.state.container
    container.payment_service.notify_method(session)
    return HTMLResponse(_METHOD_ACK_HTML)


@router.post("/continue")
async def continue_payment(
    body: ContinueRequest,
    request: Request,
    background_tasks: BackgroundTasks,
) -> dict[str, object]:
    """Resume authorization once the method step finished or timed out."""
    container: AppContainer = request.app.state.container
    result = await container.payment_service.continue_authorization(
        body.session_id, body.azul_order_id, background_tasks
    )
    return result.as_response()


@router.post("/callback")
async def challenge_callback(
    request: Request,
    background_tasks: BackgroundTasks,
    session: str | None = None,
) -> HTMLResponse:
    """Receive the issuer's challenge result and hand it back to the checkout."""
    if not session:
        return HTMLResponse("Missing session", status_code=400)
    container: AppContainer = request.app.state.container
    cres = await _read_cres(request)
    try:
        completion = await container.payment_service.complete_challenge(
            session, cres, background_tasks
        )
    except InvalidRequest:
        _logger.warning("Rejected challenge callback with malformed session id")
        return HTMLResponse("Invalid session", status_code=400)

    settings = container.settings
    return_url = (
        f"{settings.frontend_base_url.rstrip('/')}{settings.payment_return_path}"
    )
    return HTMLResponse(
        render_challenge_page(completion, settings.allowed_origin, return_url)
    )


@router.get("/status")
def payment_status(request: Request, session: str | None = None) -> dict[str, object]:
    """Return the client-safe status of a payment session."""
    container: AppContainer = request.app.state.container
    return container.payment_service.get_status(session).as_response()


async def _read_cres(request: Request) -> str:
    """Extract the challenge result from a form or JSON body."""
    content_type = request.headers.get("content-type", "")
    try:
        if "application/json" in content_type:
            payload = await request.json()
            if not isinstance(payload, dict):
                return ""
        else:
            payload = await request.form()
    except Exception:
        _logger.warning("Unreadable challenge callback body", exc_info=True)
        return ""
    for key in _CRES_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return ""
