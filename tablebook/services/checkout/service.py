"""Checkout session creation.

Validates the booking request, places holds on the requested tables and
opens a hosted payment page whose metadata carries every booking fact the
webhook later needs to fulfill the reservation.
"""

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from tablebook.common.errors import ConflictError, PaymentGatewayError, ValidationError
from tablebook.common.logging import log_context, logger
from tablebook.common.metrics import checkout_sessions_total
from tablebook.common.timeslots import compute_end_time
from tablebook.common.tracing import booking_span
from tablebook.services.checkout.gateway import CheckoutSession
from tablebook.services.checkout.schemas import CheckoutRequest
from tablebook.services.reservations.conflicts import HOLD_CONFLICT, STORE_ERROR, SlotRequest
from tablebook.services.reservations.holds import HoldManager

CONFLICT_MESSAGES = {
    HOLD_CONFLICT: "This table is currently being booked by another customer. Please refresh and choose another slot.",
    STORE_ERROR: "We could not confirm availability right now. Please refresh and try again.",
}
DEFAULT_CONFLICT_MESSAGE = "This table has just been booked. Please refresh and choose another slot."


def describe_validation_error(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(item) for item in error.get("loc", ())) or "body"
        parts.append(f"{field}: {error.get('msg')}")
    return "Invalid booking request: " + "; ".join(parts)


class CheckoutService:
    """Owns the hold-then-pay half of the booking flow."""

    def __init__(self, holds: HoldManager, gateway, settings, service_name: str = "tablebook-api") -> None:
        self.holds = holds
        self.gateway = gateway
        self.settings = settings
        self.service_name = service_name

    def validate(self, payload) -> CheckoutRequest:
        if isinstance(payload, CheckoutRequest):
            return payload
        if not isinstance(payload, dict):
            raise ValidationError("Missing required data: tables, price, or email.")
        try:
            return CheckoutRequest.model_validate(payload)
        except PydanticValidationError as exc:
            raise ValidationError(describe_validation_error(exc)) from exc

    def create_checkout_session(self, payload) -> CheckoutSession:
        """Hold the tables and return the hosted checkout session.

        Raises `ValidationError`, `ConflictError` or `PaymentGatewayError`.
        """

        req = self.validate(payload)
        with log_context(booking_ref=req.booking_ref):
            return self._hold_and_open(req)

    def _hold_and_open(self, req: CheckoutRequest) -> CheckoutSession:
        end_time = compute_end_time(req.booking_time, self.settings.booking_duration_minutes)
        slot = SlotRequest(
            tenant_id=req.tenant_id,
            table_ids=req.table_ids,
            booking_date=req.booking_date,
            start_time=req.booking_time,
            end_time=end_time,
        )

        with booking_span("checkout.hold", tenant_id=req.tenant_id, tables=len(req.table_ids)):
            result = self.holds.place_hold(slot, req.booking_ref)
        if result.conflict:
            checkout_sessions_total.labels(service=self.service_name, outcome="conflict").inc()
            raise ConflictError(
                CONFLICT_MESSAGES.get(result.reason, DEFAULT_CONFLICT_MESSAGE),
                status=HOLD_CONFLICT if result.reason == HOLD_CONFLICT else "conflict",
                table_id=result.conflicting_table_id,
                redirect=self.settings.table_selection_url,
            )

        count = len(req.table_ids)
        tables = ", ".join(str(table_id) for table_id in req.table_ids)
        try:
            session = self.gateway.create_checkout_session(
                name=f"Premium Table Reservation ({count} Table{'s' if count > 1 else ''})",
                description=f"Tables: {tables} | Date: {req.booking_date.isoformat()} | Time: {req.booking_time}.",
                amount_minor=req.total_amount_minor,
                currency=self.settings.checkout_currency,
                customer_email=req.email,
                metadata=self._metadata(req, end_time),
                success_url=self.settings.checkout_success_url,
                cancel_url=self.settings.checkout_cancel_url,
            )
        except PaymentGatewayError:
            checkout_sessions_total.labels(service=self.service_name, outcome="gateway_error").inc()
            self._release_holds(req)
            raise

        checkout_sessions_total.labels(service=self.service_name, outcome="created").inc()
        logger.info(
            "checkout_session_created booking_ref=%s session_id=%s tables=%s expires_at=%s",
            req.booking_ref,
            session.id,
            req.table_ids,
            result.expires_at,
        )
        return session

    def _metadata(self, req: CheckoutRequest, end_time: str) -> dict[str, str]:
        return {
            "table_ids": ",".join(str(table_id) for table_id in req.table_ids),
            "booking_date": req.booking_date.isoformat(),
            "booking_time": req.booking_time,
            "end_time": end_time,
            "tenant_id": req.tenant_id,
            "booking_ref": req.booking_ref,
            "customer_name": req.customer_name or "",
            "email": req.email,
            "party_size": str(req.party_size) if req.party_size is not None else "",
            "receive_offers": "TRUE" if req.receive_offers else "FALSE",
        }

    def _release_holds(self, req: CheckoutRequest) -> None:
        try:
            released = self.holds.expire_holds(req.tenant_id, req.booking_ref)
            logger.info("holds_released booking_ref=%s count=%s", req.booking_ref, released)
        except SQLAlchemyError as exc:
            logger.warning("hold_release_failed booking_ref=%s error=%s", req.booking_ref, exc)
