"""Admin booking operations.

Every mutation is scoped by tenant: the predicate always carries both the
booking id and the tenant id, so one tenant's credential cannot touch
another tenant's rows.
"""

from pydantic import BaseModel
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tablebook.common.errors import ConflictError, PaymentGatewayError, TransientStoreError
from tablebook.common.logging import logger
from tablebook.common.metrics import bookings_created_total
from tablebook.common.timeslots import compute_end_time, format_minutes, parse_time, to_minutes
from tablebook.services.admin.schemas import ManualBookingRequest
from tablebook.services.reservations.conflicts import HOLD_CONFLICT, ConflictDetector, SlotRequest
from tablebook.services.reservations.locks import lock_slots
from tablebook.services.reservations.models import PAID, Booking
from tablebook.services.webhook.service import MANUAL_BOOKING_KIND


class ManualBookingResult(BaseModel):
    booking_id: int
    tenant_id: str
    table_id: int
    booking_date: str
    start_time: str
    end_time: str
    checkout_url: str | None = None


class AdminBookingService:
    """Manual booking creation, payment-link attachment and scoped deletion."""

    def __init__(
        self,
        session_factory,
        detector: ConflictDetector,
        gateway,
        settings,
        service_name: str = "tablebook-api",
    ) -> None:
        self.session_factory = session_factory
        self.detector = detector
        self.gateway = gateway
        self.settings = settings
        self.service_name = service_name

    def create_manual_booking(self, req: ManualBookingRequest) -> ManualBookingResult:
        """Insert a staff-confirmed booking, optionally attaching a payment link."""

        end_time = req.end_time or compute_end_time(req.start_time, self.settings.booking_duration_minutes)
        slot = SlotRequest(
            tenant_id=req.tenant_id,
            table_ids=[req.table_id],
            booking_date=req.booking_date,
            start_time=req.start_time,
            end_time=end_time,
        )
        try:
            with self.session_factory() as db:
                lock_slots(db, req.tenant_id, [req.table_id], req.booking_date)
                conflict = self.detector.find_conflict(db, slot)
                if conflict is not None:
                    db.rollback()
                    raise ConflictError(
                        f"Table {req.table_id} is not available at {req.start_time} on {req.booking_date}.",
                        status=HOLD_CONFLICT if conflict.reason == HOLD_CONFLICT else "conflict",
                        table_id=req.table_id,
                    )
                booking = Booking(
                    tenant_id=req.tenant_id,
                    table_id=req.table_id,
                    booking_date=req.booking_date,
                    start_time=parse_time(req.start_time),
                    end_time=parse_time(end_time),
                    payment_status=PAID,
                    customer_email=req.customer_email,
                    customer_name=req.customer_name,
                    party_size=req.party_size,
                    is_manual=True,
                    host_notes=req.notes,
                )
                db.add(booking)
                try:
                    db.commit()
                except IntegrityError as exc:
                    db.rollback()
                    raise ConflictError(f"Table {req.table_id} is not available.", table_id=req.table_id) from exc
        except SQLAlchemyError as exc:
            raise TransientStoreError(f"Database insert failed: {exc}") from exc

        bookings_created_total.labels(service=self.service_name, source="manual").inc()
        logger.info("manual_booking_created booking_id=%s tenant_id=%s table_id=%s", booking.id, req.tenant_id, req.table_id)
        result = ManualBookingResult(
            booking_id=booking.id,
            tenant_id=req.tenant_id,
            table_id=req.table_id,
            booking_date=req.booking_date.isoformat(),
            start_time=format_minutes(to_minutes(req.start_time)),
            end_time=end_time,
        )
        if req.payment_amount_minor:
            result.checkout_url = self._payment_link(booking, req)
        return result

    def _payment_link(self, booking: Booking, req: ManualBookingRequest) -> str | None:
        try:
            session = self.gateway.create_checkout_session(
                name=f"Booking Table {booking.table_id} on {req.booking_date.isoformat()} at {req.start_time}",
                description=None,
                amount_minor=req.payment_amount_minor,
                currency=self.settings.checkout_currency,
                customer_email=req.customer_email,
                metadata={"booking_id": str(booking.id), "tenant_id": req.tenant_id, "kind": MANUAL_BOOKING_KIND},
                success_url=self.settings.checkout_success_url,
                cancel_url=self.settings.checkout_cancel_url,
            )
        except PaymentGatewayError as exc:
            logger.warning("manual_booking_payment_link_failed booking_id=%s error=%s", booking.id, exc.message)
            return None
        if not self.attach_order_id(booking.id, req.tenant_id, session.id):
            logger.warning("manual_booking_order_not_attached booking_id=%s", booking.id)
        return session.url

    def attach_order_id(self, booking_id: int, tenant_id: str, order_id: str) -> bool:
        """Record the payment provider order on a booking that has none yet."""

        try:
            with self.session_factory() as db:
                result = db.execute(
                    update(Booking)
                    .where(
                        Booking.id == booking_id,
                        Booking.tenant_id == tenant_id,
                        Booking.stripe_order_id.is_(None),
                    )
                    .values(stripe_order_id=order_id)
                )
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("attach_order_failed booking_id=%s error=%s", booking_id, exc)
            return False
        return result.rowcount == 1

    def delete_booking(self, booking_id: int, tenant_id: str) -> bool:
        """Delete one booking owned by `tenant_id`; False when nothing matched."""

        try:
            with self.session_factory() as db:
                result = db.execute(delete(Booking).where(Booking.id == booking_id, Booking.tenant_id == tenant_id))
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("booking_delete_failed booking_id=%s error=%s", booking_id, exc)
            raise TransientStoreError("Database delete failed.") from exc
        deleted = result.rowcount == 1
        logger.info("booking_delete booking_id=%s tenant_id=%s deleted=%s", booking_id, tenant_id, deleted)
        return deleted
