"""Explicit construction and teardown of the app's collaborators.

Everything the handlers use (engine, payment gateway, notifier, services)
is built here once per process and handed to the app, so tests can build the
same graph around SQLite and fakes.
"""

import httpx
import redis
from pydantic import BaseModel, ConfigDict
from sqlalchemy.engine import Engine

from tablebook.common.db import make_engine, make_session_factory
from tablebook.services.admin.service import AdminBookingService
from tablebook.services.api_gateway.ratelimit import TokenBucket
from tablebook.services.checkout.gateway import StripeGateway
from tablebook.services.checkout.service import CheckoutService
from tablebook.services.notification.service import NotificationService
from tablebook.services.reservations.conflicts import ConflictDetector
from tablebook.services.reservations.holds import HoldManager
from tablebook.services.webhook.service import WebhookProcessor


class ServiceContainer(BaseModel):
    """Process-scoped collaborators of the booking API."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    settings: object
    engine: Engine | None = None
    session_factory: object
    gateway: object
    notifier: object
    detector: ConflictDetector
    holds: HoldManager
    checkout: CheckoutService
    webhook: WebhookProcessor
    admin: AdminBookingService
    rate_limiter: TokenBucket | None = None
    http_client: httpx.Client | None = None

    def close(self) -> None:
        if self.http_client is not None:
            self.http_client.close()
        if self.engine is not None:
            self.engine.dispose()


def assemble(settings, session_factory, gateway, notifier, rate_limiter=None, clock=None, **extra) -> ServiceContainer:
    """Wire services around already-built store, gateway and notifier."""

    detector = ConflictDetector(session_factory) if clock is None else ConflictDetector(session_factory, clock=clock)
    holds = HoldManager(session_factory, detector, settings.hold_duration_minutes, settings.service_name)
    return ServiceContainer(
        settings=settings,
        session_factory=session_factory,
        gateway=gateway,
        notifier=notifier,
        detector=detector,
        holds=holds,
        checkout=CheckoutService(holds, gateway, settings, settings.service_name),
        webhook=WebhookProcessor(
            session_factory,
            gateway,
            notifier,
            detector,
            duration_minutes=settings.booking_duration_minutes,
            stall_seconds=settings.webhook_stall_seconds,
            service_name=settings.service_name,
        ),
        admin=AdminBookingService(session_factory, detector, gateway, settings, settings.service_name),
        rate_limiter=rate_limiter,
        **extra,
    )


def build_container(settings) -> ServiceContainer:
    """Build production collaborators from configuration."""

    engine = make_engine(settings.postgres_dsn)
    session_factory = make_session_factory(engine)
    http_client = httpx.Client(timeout=5.0)
    gateway = StripeGateway(
        settings.stripe_secret_key,
        settings.stripe_webhook_secret,
        settings.stripe_webhook_tolerance_seconds,
    )
    notifier = NotificationService(
        session_factory,
        resend_api_key=settings.resend_api_key,
        sender=settings.notification_sender,
        staff_email=settings.staff_email,
        currency=settings.checkout_currency,
        automation_webhook_url=settings.automation_webhook_url,
        http_client=http_client,
    )
    rate_limiter = None
    if settings.rate_limit_per_minute > 0:
        rate_limiter = TokenBucket(
            redis.Redis.from_url(settings.redis_url, decode_responses=True),
            settings.rate_limit_per_minute,
        )
    return assemble(
        settings,
        session_factory,
        gateway,
        notifier,
        rate_limiter=rate_limiter,
        engine=engine,
        http_client=http_client,
    )
