"""Staff and customer notifications for booking outcomes.

Email goes through Resend; when an automation hook URL is configured each
notification is also forwarded there as JSON. Every attempt is written to
`notification_logs`. Delivery errors are raised to the caller, which decides
whether they matter (for the webhook they never do).
"""

import html
from datetime import date

import httpx
import resend
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from tablebook.common.logging import logger
from tablebook.services.notification.models import NotificationLog

CURRENCY_SYMBOLS = {"gbp": "£", "usd": "$", "eur": "€"}

STAFF_NEW_BOOKING = "staff_new_booking"
CUSTOMER_CONFIRMATION = "customer_confirmation"
STAFF_UNFULFILLED_ALERT = "staff_unfulfilled_alert"


def _h(value, default: str = "N/A") -> str:
    """Escape a customer-supplied value for an HTML email body."""

    if value is None or value == "":
        return default
    return html.escape(str(value))


class BookingSummary(BaseModel):
    """Booking facts rendered into notifications."""

    tenant_id: str
    booking_ref: str
    table_ids: list[int]
    booking_date: date
    start_time: str
    end_time: str
    customer_name: str | None = None
    customer_email: str | None = None
    party_size: int | None = None
    total_amount_minor: int | None = None
    order_id: str | None = None
    source: str = "CUSTOMER PAID"

    @property
    def tables(self) -> str:
        return ", ".join(str(table_id) for table_id in self.table_ids)


class NotificationService:
    """Sends booking emails and forwards them to the automation hook."""

    def __init__(
        self,
        session_factory,
        resend_api_key: str,
        sender: str,
        staff_email: str,
        currency: str = "gbp",
        automation_webhook_url: str = "",
        http_client: httpx.Client | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.sender = sender
        self.staff_email = staff_email
        self.currency = currency
        self.automation_webhook_url = automation_webhook_url
        self.http_client = http_client
        self.email_enabled = bool(resend_api_key)
        if self.email_enabled:
            resend.api_key = resend_api_key

    def _money(self, amount_minor: int | None) -> str:
        if amount_minor is None:
            return "N/A"
        symbol = CURRENCY_SYMBOLS.get(self.currency.lower(), self.currency.upper() + " ")
        return f"{symbol}{amount_minor / 100:.2f}"

    def staff_new_booking(self, booking: BookingSummary, display_name: str) -> None:
        subject = f"[NEW BOOKING - {booking.source}] {display_name}: Table(s) {booking.tables}"
        body = f"""
            <p>A new <b>{booking.source}</b> booking has been confirmed for <b>{_h(display_name)}</b>.</p>
            <p><strong>Customer:</strong> {_h(booking.customer_name)}</p>
            <ul>
                <li><strong>Party Size:</strong> {booking.party_size or 'N/A'}</li>
                <li><strong>Table Number(s):</strong> {booking.tables}</li>
                <li><strong>Date:</strong> {booking.booking_date.isoformat()}</li>
                <li><strong>Time:</strong> {_h(booking.start_time)} - {_h(booking.end_time)}</li>
                <li><strong>Source:</strong> {booking.source}</li>
                <li><strong>Stripe Order ID:</strong> {_h(booking.order_id)}</li>
                <li><strong>Customer Email:</strong> {_h(booking.customer_email)}</li>
            </ul>
        """
        self._deliver(STAFF_NEW_BOOKING, booking, self.staff_email, subject, body)

    def customer_confirmation(self, booking: BookingSummary, display_name: str) -> None:
        if not booking.customer_email:
            logger.warning("customer_confirmation_skipped booking_ref=%s reason=no_email", booking.booking_ref)
            return
        subject = f"Your Premium Table Reservation Confirmed at {display_name}"
        body = f"""
            <p>Dear {_h(booking.customer_name, "Customer")},</p>
            <p>Your premium table reservation at <b>{_h(display_name)}</b> has been successfully confirmed and paid for.</p>
            <p><strong>Reservation Details:</strong></p>
            <ul>
                <li><strong>Restaurant:</strong> {_h(display_name)}</li>
                <li><strong>Date:</strong> {booking.booking_date.isoformat()}</li>
                <li><strong>Time:</strong> {_h(booking.start_time)} - {_h(booking.end_time)}</li>
                <li><strong>Table Number(s):</strong> {booking.tables}</li>
                <li><strong>Party Size:</strong> {booking.party_size or 'N/A'}</li>
                <li><strong>Amount Paid:</strong> {self._money(booking.total_amount_minor)}</li>
            </ul>
            <p>Your payment receipt has been sent separately. Please contact us at <b>{_h(self.sender)}</b>
            if you have any questions.</p>
            <p>Thank you!</p>
        """
        self._deliver(CUSTOMER_CONFIRMATION, booking, booking.customer_email, subject, body)

    def staff_unfulfilled_alert(
        self,
        booking: BookingSummary,
        display_name: str,
        booked: list[int],
        unfulfilled: list[int],
    ) -> None:
        """Urgent alert: the customer paid but some tables were taken by a racing booking."""

        subject = f"[URGENT - PAID BUT NOT BOOKED] {display_name}: Table(s) {', '.join(map(str, unfulfilled))}"
        body = f"""
            <p><b>Action required.</b> A customer paid for a booking at <b>{_h(display_name)}</b>
            that could not be fully confirmed because the table(s) were already taken.</p>
            <ul>
                <li><strong>Booking Ref:</strong> {_h(booking.booking_ref)}</li>
                <li><strong>Stripe Order ID:</strong> {_h(booking.order_id)}</li>
                <li><strong>Customer:</strong> {_h(booking.customer_name)} ({_h(booking.customer_email)})</li>
                <li><strong>Date:</strong> {booking.booking_date.isoformat()}</li>
                <li><strong>Time:</strong> {_h(booking.start_time)} - {_h(booking.end_time)}</li>
                <li><strong>Booked Table(s):</strong> {', '.join(map(str, booked)) or 'none'}</li>
                <li><strong>Unavailable Table(s):</strong> {', '.join(map(str, unfulfilled))}</li>
                <li><strong>Amount Paid:</strong> {self._money(booking.total_amount_minor)}</li>
            </ul>
            <p>Contact the customer and issue a refund or arrange an alternative table manually.</p>
        """
        self._deliver(STAFF_UNFULFILLED_ALERT, booking, self.staff_email, subject, body)

    def _deliver(self, kind: str, booking: BookingSummary, recipient: str, subject: str, html: str) -> None:
        status = "skipped"
        detail = None
        try:
            if self.email_enabled:
                response = resend.Emails.send(
                    {"from": self.sender, "to": [recipient], "subject": subject, "html": html}
                )
                status = "sent"
                detail = str(response.get("id")) if isinstance(response, dict) else None
            else:
                detail = "email disabled"
            if self.automation_webhook_url:
                self._forward(kind, booking, recipient, subject)
        except Exception as exc:
            self._record(kind, booking, recipient, "failed", str(exc))
            logger.warning("notification_failed kind=%s booking_ref=%s error=%s", kind, booking.booking_ref, exc)
            raise
        self._record(kind, booking, recipient, status, detail)
        logger.info("notification_%s kind=%s booking_ref=%s", status, kind, booking.booking_ref)

    def _forward(self, kind: str, booking: BookingSummary, recipient: str, subject: str) -> None:
        payload = {"kind": kind, "recipient": recipient, "subject": subject, "booking": booking.model_dump(mode="json")}
        if self.http_client is not None:
            resp = self.http_client.post(self.automation_webhook_url, json=payload)
        else:
            resp = httpx.post(self.automation_webhook_url, json=payload, timeout=5.0)
        resp.raise_for_status()

    def _record(self, kind: str, booking: BookingSummary, recipient: str, status: str, detail: str | None) -> None:
        try:
            with self.session_factory() as db:
                db.add(
                    NotificationLog(
                        tenant_id=booking.tenant_id,
                        booking_ref=booking.booking_ref,
                        kind=kind,
                        channel="email",
                        recipient=recipient,
                        status=status,
                        detail=detail,
                    )
                )
                db.commit()
        except SQLAlchemyError as exc:
            logger.warning("notification_log_failed kind=%s booking_ref=%s error=%s", kind, booking.booking_ref, exc)
