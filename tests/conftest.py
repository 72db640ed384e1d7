"""Shared fixtures: in-memory Booking Store, fake provider/notifier, signed events."""

import hashlib
import hmac
import json
import os
import time
from datetime import datetime, timezone

os.environ.setdefault("POSTGRES_DSN", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("OTEL_EXPORTER_OTLP_ENDPOINT", "")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "0")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from tablebook.common.config import settings
from tablebook.common.db import Base, make_session_factory
from tablebook.common.errors import PaymentGatewayError
from tablebook.services.api_gateway.container import assemble
from tablebook.services.api_gateway.main import create_app
from tablebook.services.checkout.gateway import CheckoutSession, StripeGateway

# Import models so Base.metadata is populated for create_all.
import tablebook.services.notification.models  # noqa: F401
import tablebook.services.reservations.models  # noqa: F401
import tablebook.services.webhook.models  # noqa: F401

WEBHOOK_SECRET = settings.stripe_webhook_secret


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeGateway(StripeGateway):
    """Real signature verification, recorded (never sent) checkout sessions."""

    def __init__(self) -> None:
        super().__init__("sk_test_dummy", WEBHOOK_SECRET)
        self.sessions: list[dict] = []
        self.fail = False

    def create_checkout_session(self, **kwargs) -> CheckoutSession:
        if self.fail:
            raise PaymentGatewayError("Payment provider unavailable, please try again.")
        self.sessions.append(kwargs)
        session_id = f"cs_test_{len(self.sessions)}"
        return CheckoutSession(id=session_id, url=f"https://checkout.stripe.test/{session_id}")


class FakeNotifier:
    """Records notification calls; `fail_kinds` makes selected ones raise."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.fail_kinds: set[str] = set()

    def _call(self, kind, *args):
        self.calls.append((kind, *args))
        if kind in self.fail_kinds:
            raise RuntimeError(f"{kind} delivery failed")

    def staff_new_booking(self, booking, display_name):
        self._call("staff_new_booking", booking, display_name)

    def customer_confirmation(self, booking, display_name):
        self._call("customer_confirmation", booking, display_name)

    def staff_unfulfilled_alert(self, booking, display_name, booked, unfulfilled):
        self._call("staff_unfulfilled_alert", booking, display_name, booked, unfulfilled)

    def kinds(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def file_session_factory(tmp_path):
    """Sessions on a file-backed database so threads get their own connections."""

    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path}/store.db",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def broken_session_factory(tmp_path):
    """Sessions bound to a database file that cannot be opened."""

    engine = create_engine(f"sqlite+pysqlite:///{tmp_path}/missing/dir/store.db")
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 5, 31, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def container(session_factory, gateway, notifier, clock):
    return assemble(settings, session_factory, gateway, notifier, clock=clock)


@pytest.fixture
def client(container):
    with TestClient(create_app(container)) as test_client:
        yield test_client


def checkout_payload(**overrides) -> dict:
    payload = {
        "table_ids": [5],
        "email": "a@b.com",
        "booking_date": "2025-06-01",
        "booking_time": "19:00",
        "total_amount_minor": 1000,
        "customer_name": "Ada",
        "party_size": 2,
        "tenant_id": "t1",
        "booking_ref": "r1",
        "receive_offers": False,
    }
    payload.update(overrides)
    return payload


def completed_event(
    event_id: str = "evt_1",
    session_id: str = "cs_test_1",
    amount_total: int = 1000,
    event_type: str = "checkout.session.completed",
    **metadata_overrides,
) -> dict:
    metadata = {
        "table_ids": "5,6",
        "booking_date": "2025-06-01",
        "booking_time": "19:00",
        "tenant_id": "t1",
        "booking_ref": "r1",
        "customer_name": "Ada",
        "email": "a@b.com",
        "party_size": "4",
        "receive_offers": "FALSE",
    }
    metadata.update(metadata_overrides)
    metadata = {key: value for key, value in metadata.items() if value is not None}
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "amount_total": amount_total,
                "customer_details": {"email": metadata.get("email")},
                "metadata": metadata,
            }
        },
    }


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a `stripe-signature` header value for `payload`."""

    timestamp = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def signed(event: dict) -> tuple[bytes, str]:
    raw = json.dumps(event)
    return raw.encode("utf-8"), sign(raw)
