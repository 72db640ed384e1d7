"""Payment-completion webhook consumer.

Per delivery: verify signature -> filter event type -> claim the event id in
the ledger (`processing`) -> book every table -> mark `completed` -> best-effort
tracking, consent and notifications. The ledger claim is the only thing that
keeps side effects at most once under at-least-once delivery.
"""

from datetime import date, datetime, timedelta, timezone

from pydantic import BaseModel
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tablebook.common.db import dialect_insert
from tablebook.common.errors import PartialFulfillmentError, TransientStoreError, ValidationError
from tablebook.common.logging import log_context, logger
from tablebook.common.metrics import (
    best_effort_failures_total,
    bookings_created_total,
    duplicate_events_skipped_total,
    partial_fulfillment_total,
    stalled_webhook_events_total,
    webhook_events_total,
)
from tablebook.common.timeslots import compute_end_time, parse_time, to_minutes
from tablebook.common.tracing import booking_span
from tablebook.services.notification.service import BookingSummary
from tablebook.services.reservations.conflicts import ConflictDetector, SlotRequest
from tablebook.services.reservations.locks import lock_slots
from tablebook.services.reservations.models import PAID, Booking, Tenant
from tablebook.services.webhook.models import COMPLETED, PROCESSING, EngagementTracking, MarketingOptIn, WebhookEvent

PAYMENT_COMPLETED = "checkout.session.completed"
MANUAL_BOOKING_KIND = "manual_booking"
CONSENT_TEXT = "Send me restaurant discounts and offers"

FULFILLED = "fulfilled"
PARTIAL = "partial"
IGNORED = "ignored"
DUPLICATE = "duplicate"
IN_FLIGHT = "in_flight"
STALLED = "stalled"
INVALID_METADATA = "invalid_metadata"
MANUAL_PAYMENT = "manual_payment"
CLAIMED = "claimed"


class PaidOrder(BaseModel):
    """Booking facts recovered from a completed checkout session."""

    order_id: str
    tenant_id: str
    booking_ref: str
    table_ids: list[int]
    booking_date: date
    start_time: str
    end_time: str
    customer_name: str
    customer_email: str | None = None
    party_size: int | None = None
    total_amount_minor: int | None = None
    receive_offers: bool = False

    def summary(self) -> BookingSummary:
        return BookingSummary(
            tenant_id=self.tenant_id,
            booking_ref=self.booking_ref,
            table_ids=self.table_ids,
            booking_date=self.booking_date,
            start_time=self.start_time,
            end_time=self.end_time,
            customer_name=self.customer_name,
            customer_email=self.customer_email,
            party_size=self.party_size,
            total_amount_minor=self.total_amount_minor,
            order_id=self.order_id,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_paid_order(session: dict, duration_minutes: int) -> PaidOrder:
    """Extract and validate booking metadata from a checkout session object."""

    metadata = session.get("metadata") or {}
    tenant_id = (metadata.get("tenant_id") or "").strip()
    booking_ref = (metadata.get("booking_ref") or "").strip()
    if not tenant_id or booking_ref in ("", "N/A"):
        raise ValidationError(f"missing tenant_id or booking_ref in session {session.get('id')}")
    try:
        table_ids = list(
            dict.fromkeys(int(part) for part in (metadata.get("table_ids") or "").split(",") if part.strip())
        )
        booking_date = date.fromisoformat(metadata.get("booking_date") or "")
        start_minutes = to_minutes(metadata.get("booking_time") or "")
    except ValueError as exc:
        raise ValidationError(f"malformed booking metadata in session {session.get('id')}: {exc}") from exc
    if not table_ids:
        raise ValidationError(f"missing table_ids in session {session.get('id')}")
    if not session.get("id"):
        raise ValidationError("checkout session has no id")

    start_time = f"{start_minutes // 60:02d}:{start_minutes % 60:02d}"
    details = session.get("customer_details") or {}
    email = metadata.get("email") or details.get("email") or session.get("customer_email")
    party_size = metadata.get("party_size") or ""
    return PaidOrder(
        order_id=session["id"],
        tenant_id=tenant_id,
        booking_ref=booking_ref,
        table_ids=table_ids,
        booking_date=booking_date,
        start_time=start_time,
        end_time=compute_end_time(start_time, duration_minutes),
        customer_name=metadata.get("customer_name") or "Customer",
        customer_email=email or None,
        party_size=int(party_size) if party_size.isdigit() else None,
        total_amount_minor=session.get("amount_total"),
        receive_offers=(metadata.get("receive_offers") or "").upper() == "TRUE",
    )


class WebhookProcessor:
    """Turns verified payment events into bookings exactly once per event id."""

    def __init__(
        self,
        session_factory,
        gateway,
        notifier,
        detector: ConflictDetector,
        duration_minutes: int = 120,
        stall_seconds: int = 600,
        service_name: str = "tablebook-api",
    ) -> None:
        self.session_factory = session_factory
        self.gateway = gateway
        self.notifier = notifier
        self.detector = detector
        self.duration_minutes = duration_minutes
        self.stall_seconds = stall_seconds
        self.service_name = service_name

    def handle(self, payload: bytes, signature: str | None) -> str:
        """Verify the raw body and process the event; returns the outcome label.

        Raises `SignatureError` for unauthenticated payloads and
        `TransientStoreError` when a retry by the provider could help.
        """

        event = self.gateway.verify_event(payload, signature)
        return self.process_event(event)

    def process_event(self, event: dict) -> str:
        session = (event.get("data") or {}).get("object") or {}
        metadata = session.get("metadata") or {}
        with log_context(event_id=event["id"], booking_ref=metadata.get("booking_ref")):
            return self._process(event["id"], event["type"], session, metadata)

    def _process(self, event_id: str, event_type: str, session: dict, metadata: dict) -> str:
        if event_type != PAYMENT_COMPLETED:
            logger.info("webhook_event_ignored event_type=%s", event_type)
            return self._outcome(IGNORED)

        claim = self._claim(event_id, event_type, metadata)
        if claim != CLAIMED:
            return self._outcome(claim)

        if metadata.get("kind") == MANUAL_BOOKING_KIND:
            self._complete(event_id, f"manual booking {metadata.get('booking_id')} paid via {session.get('id')}")
            logger.info("manual_booking_paid booking_id=%s order_id=%s", metadata.get("booking_id"), session.get("id"))
            return self._outcome(MANUAL_PAYMENT)

        try:
            order = parse_paid_order(session, self.duration_minutes)
        except ValidationError as exc:
            # Retrying cannot repair metadata; acknowledge and leave it to operators.
            logger.error("webhook_metadata_invalid error=%s", exc.message)
            self._complete(event_id, exc.message)
            return self._outcome(INVALID_METADATA)

        try:
            with booking_span(
                "webhook.fulfill",
                order_id=order.order_id,
                tenant_id=order.tenant_id,
                tables=len(order.table_ids),
            ):
                self._fulfill(order)
        except PartialFulfillmentError as exc:
            partial_fulfillment_total.labels(service=self.service_name).inc()
            logger.error("paid_booking_unfulfilled %s order_id=%s", exc.message, order.order_id)
            self._complete(event_id, exc.message)
            self._after_fulfillment(order, exc)
            return self._outcome(PARTIAL)
        except TransientStoreError:
            self._release(event_id)
            webhook_events_total.labels(service=self.service_name, outcome="retry").inc()
            raise

        self._complete(event_id, f"Ref: {order.booking_ref} tables={order.table_ids}")
        self._after_fulfillment(order, None)
        return self._outcome(FULFILLED)

    def _outcome(self, outcome: str) -> str:
        webhook_events_total.labels(service=self.service_name, outcome=outcome).inc()
        return outcome

    def _claim(self, event_id: str, event_type: str, metadata: dict) -> str:
        """Insert the ledger row as `processing`, or report why the event is not ours to run."""

        try:
            with self.session_factory() as db:
                existing = db.get(WebhookEvent, event_id)
                if existing is not None:
                    return self._existing_status(existing)
                now = self.detector.clock()
                db.add(
                    WebhookEvent(
                        event_id=event_id,
                        event_type=event_type,
                        tenant_id=metadata.get("tenant_id") or None,
                        status=PROCESSING,
                        note=f"Ref: {metadata.get('booking_ref') or 'N/A'}",
                        created_at=now,
                        updated_at=now,
                    )
                )
                try:
                    db.commit()
                except IntegrityError:
                    db.rollback()
                    existing = db.get(WebhookEvent, event_id)
                    if existing is None:
                        raise TransientStoreError(f"ledger claim for {event_id} lost")
                    return self._existing_status(existing)
        except SQLAlchemyError as exc:
            logger.error("webhook_ledger_unavailable error=%s", exc)
            raise TransientStoreError(f"idempotency ledger unavailable: {exc}") from exc
        return CLAIMED

    def _existing_status(self, existing: WebhookEvent) -> str:
        if existing.status == COMPLETED:
            logger.info("duplicate event skipped event_type=%s", existing.event_type)
            duplicate_events_skipped_total.labels(service=self.service_name, event_type=existing.event_type).inc()
            return DUPLICATE
        started = existing.updated_at or existing.created_at
        if started is not None and started.tzinfo is None:
            started = started.replace(tzinfo=timezone.utc)
        if started is not None and self.detector.clock() - started > timedelta(seconds=self.stall_seconds):
            stalled_webhook_events_total.labels(service=self.service_name).inc()
            logger.error("webhook_event_stalled status=%s since=%s", existing.status, started)
            return STALLED
        logger.info("webhook_event_in_flight since=%s", started)
        return IN_FLIGHT

    def _complete(self, event_id: str, note: str) -> None:
        try:
            with self.session_factory() as db:
                db.execute(
                    update(WebhookEvent)
                    .where(WebhookEvent.event_id == event_id)
                    .values(status=COMPLETED, note=note[:500], updated_at=self.detector.clock())
                )
                db.commit()
        except SQLAlchemyError as exc:
            # Bookings are already durable; the row stays `processing` and shows up as stalled.
            logger.error("webhook_ledger_complete_failed error=%s", exc)

    def _release(self, event_id: str) -> None:
        try:
            with self.session_factory() as db:
                db.execute(
                    delete(WebhookEvent).where(WebhookEvent.event_id == event_id, WebhookEvent.status == PROCESSING)
                )
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("webhook_ledger_release_failed error=%s", exc)

    def _fulfill(self, order: PaidOrder) -> list[int]:
        """Book every table independently.

        Raises `PartialFulfillmentError` when some tables were taken and
        `TransientStoreError` when any insert failed for a retryable reason.
        """

        booked: list[int] = []
        unfulfilled: list[int] = []
        failed: list[int] = []
        for table_id in order.table_ids:
            try:
                if self._book_table(order, table_id):
                    booked.append(table_id)
                else:
                    unfulfilled.append(table_id)
            except SQLAlchemyError as exc:
                logger.error("booking_insert_failed table_id=%s error=%s", table_id, exc)
                failed.append(table_id)

        if failed:
            raise TransientStoreError(f"booking insert failed for tables {failed}")
        if unfulfilled:
            raise PartialFulfillmentError(order.booking_ref, booked, unfulfilled)
        return booked

    def _book_table(self, order: PaidOrder, table_id: int) -> bool:
        """Insert one PAID booking; False when an overlapping paid booking already holds the table."""

        with self.session_factory() as db:
            if self._already_booked(db, order, table_id):
                logger.info("booking_already_recorded table_id=%s order_id=%s", table_id, order.order_id)
                return True

            lock_slots(db, order.tenant_id, [table_id], order.booking_date)
            slot = SlotRequest(
                tenant_id=order.tenant_id,
                table_ids=[table_id],
                booking_date=order.booking_date,
                start_time=order.start_time,
                end_time=order.end_time,
            )
            conflict = self.detector.find_conflict(db, slot, include_holds=False)
            if conflict is not None:
                db.rollback()
                logger.warning("booking_conflict table_id=%s date=%s", table_id, order.booking_date)
                return False

            db.add(
                Booking(
                    tenant_id=order.tenant_id,
                    table_id=table_id,
                    booking_date=order.booking_date,
                    start_time=parse_time(order.start_time),
                    end_time=parse_time(order.end_time),
                    payment_status=PAID,
                    stripe_order_id=order.order_id,
                    booking_ref=order.booking_ref,
                    customer_email=order.customer_email,
                    customer_name=order.customer_name,
                    party_size=order.party_size,
                    total_amount=order.total_amount_minor,
                    is_manual=False,
                    receive_offers=order.receive_offers,
                    host_notes=f"Stripe Order: {order.order_id}",
                )
            )
            try:
                db.commit()
            except IntegrityError as exc:
                # Exclusion constraint or a racing retry of the same order.
                db.rollback()
                if self._already_booked(db, order, table_id):
                    return True
                logger.warning("booking_rejected_by_store table_id=%s error=%s", table_id, exc.orig)
                return False

        bookings_created_total.labels(service=self.service_name, source="customer").inc()
        logger.info("booking_created table_id=%s date=%s start=%s", table_id, order.booking_date, order.start_time)
        return True

    def _already_booked(self, db, order: PaidOrder, table_id: int) -> bool:
        return (
            db.execute(
                select(Booking.id).where(Booking.stripe_order_id == order.order_id, Booking.table_id == table_id)
            ).first()
            is not None
        )

    def _after_fulfillment(self, order: PaidOrder, partial: PartialFulfillmentError | None) -> None:
        """Best-effort side effects; none of them can change the webhook response."""

        self._best_effort("tracking", self._update_tracking, order)
        if order.receive_offers and order.customer_email:
            self._best_effort("marketing_optin", self._record_opt_in, order)

        display_name = self._tenant_display_name(order.tenant_id)
        summary = order.summary()
        if partial is None:
            self._best_effort("staff_notification", self.notifier.staff_new_booking, summary, display_name)
            self._best_effort("customer_confirmation", self.notifier.customer_confirmation, summary, display_name)
        else:
            self._best_effort(
                "staff_alert",
                self.notifier.staff_unfulfilled_alert,
                summary,
                display_name,
                partial.booked,
                partial.unfulfilled,
            )

    def _best_effort(self, step: str, func, *args) -> None:
        try:
            func(*args)
        except Exception as exc:
            best_effort_failures_total.labels(service=self.service_name, step=step).inc()
            logger.warning("best_effort_failed step=%s error=%s", step, exc)

    def _update_tracking(self, order: PaidOrder) -> None:
        with self.session_factory() as db:
            result = db.execute(
                update(EngagementTracking)
                .where(
                    EngagementTracking.booking_ref == order.booking_ref,
                    EngagementTracking.tenant_id == order.tenant_id,
                )
                .values(checkout_complete=True, payment_successful=True, event_type="payment_successful")
            )
            db.commit()
        if not result.rowcount:
            logger.info("tracking_row_missing booking_ref=%s", order.booking_ref)

    def _record_opt_in(self, order: PaidOrder) -> None:
        with self.session_factory() as db:
            stmt = dialect_insert(db, MarketingOptIn).values(
                email=order.customer_email,
                tenant_id=order.tenant_id,
                booking_date=order.booking_date,
                source=order.booking_ref,
                consent_text=CONSENT_TEXT,
                is_subscribed=True,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["email", "tenant_id"],
                set_={
                    "booking_date": stmt.excluded.booking_date,
                    "source": stmt.excluded.source,
                    "consent_text": stmt.excluded.consent_text,
                    "is_subscribed": True,
                },
            )
            db.execute(stmt)
            db.commit()

    def _tenant_display_name(self, tenant_id: str) -> str:
        try:
            with self.session_factory() as db:
                name = db.execute(select(Tenant.display_name).where(Tenant.tenant_id == tenant_id)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.warning("tenant_lookup_failed tenant_id=%s error=%s", tenant_id, exc)
            return tenant_id
        return name or tenant_id
