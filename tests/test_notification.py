"""Notification delivery, logging and the automation hook."""

import json
from datetime import date

import httpx
import pytest
import resend
from sqlalchemy import select

from tablebook.services.notification.models import NotificationLog
from tablebook.services.notification.service import BookingSummary, NotificationService


def _summary(**overrides):
    values = {
        "tenant_id": "t1",
        "booking_ref": "r1",
        "table_ids": [5, 6],
        "booking_date": date(2025, 6, 1),
        "start_time": "19:00",
        "end_time": "21:00",
        "customer_name": "Ada",
        "customer_email": "a@b.com",
        "party_size": 4,
        "total_amount_minor": 1000,
        "order_id": "cs_test_1",
    }
    values.update(overrides)
    return BookingSummary(**values)


def _logs(session_factory):
    with session_factory() as db:
        return db.execute(select(NotificationLog)).scalars().all()


def test_disabled_email_is_logged_as_skipped(session_factory):
    service = NotificationService(session_factory, "", "bookings@example.com", "staff@example.com")
    service.staff_new_booking(_summary(), "The Ivy")

    [log] = _logs(session_factory)
    assert log.kind == "staff_new_booking"
    assert log.status == "skipped"
    assert log.recipient == "staff@example.com"


def test_confirmation_without_email_sends_nothing(session_factory):
    service = NotificationService(session_factory, "", "bookings@example.com", "staff@example.com")
    service.customer_confirmation(_summary(customer_email=None), "The Ivy")
    assert _logs(session_factory) == []


def test_resend_delivery_is_recorded(session_factory, monkeypatch):
    sent = []

    def fake_send(params):
        sent.append(params)
        return {"id": "email_1"}

    monkeypatch.setattr(resend.Emails, "send", fake_send)
    service = NotificationService(session_factory, "re_test", "bookings@example.com", "staff@example.com")
    service.customer_confirmation(_summary(), "The Ivy")

    assert sent[0]["to"] == ["a@b.com"]
    assert sent[0]["subject"] == "Your Premium Table Reservation Confirmed at The Ivy"
    assert "£10.00" in sent[0]["html"]
    [log] = _logs(session_factory)
    assert log.status == "sent"
    assert log.detail == "email_1"


def test_delivery_failure_is_logged_and_raised(session_factory, monkeypatch):
    def failing_send(params):
        raise RuntimeError("resend down")

    monkeypatch.setattr(resend.Emails, "send", failing_send)
    service = NotificationService(session_factory, "re_test", "bookings@example.com", "staff@example.com")
    with pytest.raises(RuntimeError):
        service.staff_unfulfilled_alert(_summary(), "The Ivy", [5], [6])

    [log] = _logs(session_factory)
    assert log.kind == "staff_unfulfilled_alert"
    assert log.status == "failed"
    assert "resend down" in log.detail


def test_automation_hook_receives_json(session_factory):
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(200)

    with httpx.Client(transport=httpx.MockTransport(handler)) as http_client:
        service = NotificationService(
            session_factory,
            "",
            "bookings@example.com",
            "staff@example.com",
            automation_webhook_url="https://hooks.example.com/booking",
            http_client=http_client,
        )
        service.staff_new_booking(_summary(), "The Ivy")

    assert received[0]["kind"] == "staff_new_booking"
    assert received[0]["subject"] == "[NEW BOOKING - CUSTOMER PAID] The Ivy: Table(s) 5, 6"
    assert received[0]["booking"]["booking_date"] == "2025-06-01"


def test_automation_hook_error_is_raised(session_factory):
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    with httpx.Client(transport=transport) as http_client:
        service = NotificationService(
            session_factory,
            "",
            "bookings@example.com",
            "staff@example.com",
            automation_webhook_url="https://hooks.example.com/booking",
            http_client=http_client,
        )
        with pytest.raises(httpx.HTTPStatusError):
            service.staff_new_booking(_summary(), "The Ivy")
    assert _logs(session_factory)[0].status == "failed"


def test_customer_supplied_values_are_escaped_in_html(session_factory, monkeypatch):
    """Markup in a customer name reaches the inbox as text, not as HTML."""

    sent = []
    monkeypatch.setattr(resend.Emails, "send", lambda params: sent.append(params) or {"id": "email_1"})
    service = NotificationService(session_factory, "re_test", "bookings@example.com", "staff@example.com")
    summary = _summary(customer_name="<script>alert(1)</script>", booking_ref='r1"><a href="x">')
    service.staff_new_booking(summary, "Fish & Chips")
    service.staff_unfulfilled_alert(summary, "Fish & Chips", [5], [6])

    for params in sent:
        assert "<script>" not in params["html"]
        assert "Fish &amp; Chips" in params["html"]
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in sent[0]["html"]
    assert "r1&quot;&gt;&lt;a href=&quot;x&quot;&gt;" in sent[1]["html"]
