"""Checkout session initiation."""

import pytest

from conftest import checkout_payload
from tablebook.common.errors import ConflictError, PaymentGatewayError, ValidationError


def test_creates_session_with_metadata_and_line_item(container, gateway):
    session = container.checkout.create_checkout_session(checkout_payload(table_ids=[5, 6], receive_offers=True))

    assert session.url == "https://checkout.stripe.test/cs_test_1"
    sent = gateway.sessions[0]
    assert sent["name"] == "Premium Table Reservation (2 Tables)"
    assert sent["description"] == "Tables: 5, 6 | Date: 2025-06-01 | Time: 19:00."
    assert sent["amount_minor"] == 1000
    assert sent["currency"] == "gbp"
    assert sent["customer_email"] == "a@b.com"
    assert sent["metadata"] == {
        "table_ids": "5,6",
        "booking_date": "2025-06-01",
        "booking_time": "19:00",
        "end_time": "21:00",
        "tenant_id": "t1",
        "booking_ref": "r1",
        "customer_name": "Ada",
        "email": "a@b.com",
        "party_size": "2",
        "receive_offers": "TRUE",
    }


def test_single_table_line_item_is_singular(container, gateway):
    container.checkout.create_checkout_session(checkout_payload())
    assert gateway.sessions[0]["name"] == "Premium Table Reservation (1 Table)"


def test_legacy_total_pence_field_is_accepted(container, gateway):
    payload = checkout_payload()
    payload["total_pence"] = payload.pop("total_amount_minor")
    container.checkout.create_checkout_session(payload)
    assert gateway.sessions[0]["amount_minor"] == 1000


def test_second_customer_gets_hold_conflict(container, gateway):
    """19:00 and 19:30 on the same table: the later request is refused with a redirect."""

    container.checkout.create_checkout_session(checkout_payload())
    with pytest.raises(ConflictError) as excinfo:
        container.checkout.create_checkout_session(checkout_payload(booking_time="19:30", booking_ref="r2"))

    body = excinfo.value.to_body()
    assert body["status"] == "hold_conflict"
    assert body["table_id"] == 5
    assert body["redirect"] == container.settings.table_selection_url
    assert len(gateway.sessions) == 1


@pytest.mark.parametrize(
    "overrides",
    [
        {"table_ids": []},
        {"email": "not-an-email"},
        {"total_amount_minor": 0},
        {"booking_time": "25:00"},
        {"booking_date": "June first"},
        {"tenant_id": ""},
        {"booking_ref": ""},
    ],
)
def test_invalid_requests_are_rejected_without_holds(container, gateway, overrides):
    with pytest.raises(ValidationError):
        container.checkout.create_checkout_session(checkout_payload(**overrides))
    assert gateway.sessions == []
    # The slot is still free for a valid request.
    container.checkout.create_checkout_session(checkout_payload())


def test_gateway_failure_releases_holds(container, gateway):
    gateway.fail = True
    with pytest.raises(PaymentGatewayError):
        container.checkout.create_checkout_session(checkout_payload())

    gateway.fail = False
    session = container.checkout.create_checkout_session(checkout_payload(booking_ref="r2"))
    assert session.id == "cs_test_1"


def test_booking_time_is_normalized_to_hh_mm(container, gateway):
    container.checkout.create_checkout_session(checkout_payload(booking_time=" 9:5"))

    sent = gateway.sessions[0]
    assert sent["metadata"]["booking_time"] == "09:05"
    assert sent["metadata"]["end_time"] == "11:05"
    assert sent["description"].endswith("| Time: 09:05.")
