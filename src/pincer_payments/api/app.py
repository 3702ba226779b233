"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pincer_payments.api.three_ds import router as three_ds_router
from pincer_payments.app_logging import configure_logging
from pincer_payments.containers import AppContainer
from pincer_payments.domain.checkout import ClientContext, PaymentRequest
from pincer_payments.domain.errors import InvalidRequest, PaymentError

_FALLBACK_IP = "127.0.0.1"


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[container.settings.allowed_origin],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    app.include_router(three_ds_router)

    @app.exception_handler(PaymentError)
    async def payment_error_handler(
        request: Request, exc: PaymentError
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "%s %s failed: %s (%s)",
                request.method,
                request.url.path,
                exc.code,
                exc,
            )
        else:
            logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=exc.public_body())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        fields = sorted(
            {".".join(str(part) for part in error["loc"]) for error in exc.errors()}
        )
        logger.info(
            "%s %s rejected: invalid fields %s",
            request.method,
            request.url.path,
            fields,
        )
        error = InvalidRequest("Invalid request body")
        return JSONResponse(status_code=error.status_code, content=error.public_body())

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/api/payment")
    async def create_payment(
        payment: PaymentRequest,
        request: Request,
        background_tasks: BackgroundTasks,
    ) -> dict[str, object]:
        """Authorize a card payment, starting 3DS when the issuer asks for it."""
        state_container: AppContainer = request.app.state.container
        result = await state_container.payment_service.initiate(
            payment, _client_context(request), background_tasks
        )
        return result.as_response()

    return app


def _client_context(request: Request) -> ClientContext:
    """Extract the caller's address and browser headers from the request."""
    return ClientContext(
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        accept_header=request.headers.get("accept"),
    )


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return _FALLBACK_IP
