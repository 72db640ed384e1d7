"""Public HTTP surface of the booking API.

Checkout creation and admin endpoints are called from the browser (CORS);
the webhook endpoint is called by the payment provider and must read the raw
body for signature verification.
"""

import asyncio
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import Body, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool

from tablebook.common.config import settings as default_settings
from tablebook.common.errors import AuthorizationError, BookingError, ValidationError
from tablebook.common.logging import configure_logging, logger, trace_id_ctx
from tablebook.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from tablebook.common.startup import log_startup_config
from tablebook.common.tracing import instrument_app, setup_tracing
from tablebook.services.admin.schemas import DeleteBookingRequest, ManualBookingRequest
from tablebook.services.api_gateway.container import ServiceContainer, build_container
from tablebook.services.checkout.service import describe_validation_error

STARTUP_FIELDS = [
    "postgres_dsn",
    "redis_url",
    "stripe_secret_key",
    "stripe_webhook_secret",
    "resend_api_key",
    "hold_duration_minutes",
    "booking_duration_minutes",
    "hold_reaper_interval_seconds",
    "rate_limit_per_minute",
    "automation_webhook_url",
    "otel_exporter_otlp_endpoint",
]


async def hold_reaper(container: ServiceContainer, interval_seconds: int) -> None:
    """Periodically delete long-expired holds; availability never depends on it."""

    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await run_in_threadpool(container.holds.purge_expired, container.settings.hold_reaper_grace_minutes)
        except Exception as exc:
            logger.exception("hold reaper failed: %s", exc)


def _container(request: Request) -> ServiceContainer:
    return request.app.state.container


def _error_response(exc: BookingError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


def _parse(model, payload):
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(describe_validation_error(exc)) from exc


def enforce_api_key(settings, x_api_key: str | None) -> None:
    """Reject admin requests that do not provide the configured API key."""

    if x_api_key != settings.admin_api_key:
        raise AuthorizationError("invalid API key")


def create_app(container: ServiceContainer | None = None, settings=default_settings) -> FastAPI:
    """Build the FastAPI app; a prebuilt container skips production wiring."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = container is None
        app.state.container = build_container(settings) if owned else container
        reaper_task = None
        if settings.hold_reaper_interval_seconds > 0:
            reaper_task = asyncio.create_task(hold_reaper(app.state.container, settings.hold_reaper_interval_seconds))
        yield
        if reaper_task is not None:
            reaper_task.cancel()
        if owned:
            app.state.container.close()

    app = FastAPI(title="Tablebook Booking API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type", "x-api-key"],
    )
    instrument_app(app)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Record request count and latency for every HTTP call."""

        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        trace_id_ctx.set(request.headers.get("x-correlation-id") or str(uuid4()))
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    @app.exception_handler(BookingError)
    async def booking_error_handler(_: Request, exc: BookingError):
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Malformed request body."})

    @app.post("/api/create-checkout")
    def create_checkout(request: Request, payload: dict = Body(...)):
        """Hold the requested tables and return the hosted payment page URL."""

        container = _container(request)
        email = str(payload.get("email") or "").lower()
        if container.rate_limiter is not None and email and not container.rate_limiter.allow(email):
            return JSONResponse(status_code=429, content={"error": "rate limit exceeded"})
        session = container.checkout.create_checkout_session(payload)
        return {"url": session.url}

    @app.post("/api/webhook")
    async def stripe_webhook(request: Request, stripe_signature: str | None = Header(default=None)):
        """Verify and process one payment provider event."""

        container = _container(request)
        raw_body = await request.body()
        try:
            outcome = await run_in_threadpool(container.webhook.handle, raw_body, stripe_signature)
        except BookingError as exc:
            logger.warning("webhook_rejected status=%s error=%s", exc.status_code, exc.message)
            if exc.status_code >= 500:
                return JSONResponse(status_code=500, content=exc.to_body())
            return _error_response(exc)
        return {"received": True, "outcome": outcome}

    @app.post("/api/admin/bookings")
    def admin_create_booking(
        request: Request,
        payload: dict = Body(...),
        x_api_key: str | None = Header(default=None),
    ):
        """Create a staff-confirmed booking, optionally with a payment link."""

        container = _container(request)
        enforce_api_key(settings, x_api_key)
        result = container.admin.create_manual_booking(_parse(ManualBookingRequest, payload))
        body = {"message": "Booking created successfully!", "booking": result.model_dump(exclude={"checkout_url"})}
        if result.checkout_url:
            body["checkout_url"] = result.checkout_url
        return body

    @app.post("/api/admin-delete-booking")
    def admin_delete_booking(
        request: Request,
        payload: dict = Body(...),
        x_api_key: str | None = Header(default=None),
    ):
        """Delete one booking, scoped to the caller's tenant."""

        container = _container(request)
        enforce_api_key(settings, x_api_key)
        req = _parse(DeleteBookingRequest, payload)
        if not container.admin.delete_booking(req.booking_id, req.tenant_id):
            return JSONResponse(status_code=404, content={"error": "Booking not found for this tenant."})
        return {"message": "Booking successfully removed."}

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    @app.get("/health")
    def health():
        """Container health probe endpoint."""

        return {"ok": True}

    return app


def build_app() -> FastAPI:
    """Process entrypoint (`uvicorn --factory tablebook.services.api_gateway.main:build_app`)."""

    configure_logging()
    setup_tracing(default_settings.service_name, default_settings.otel_exporter_otlp_endpoint)
    log_startup_config(default_settings, STARTUP_FIELDS)
    return create_app()
