"""Overlap detection against paid bookings and active holds.

A slot conflicts when any `PAID` booking or unexpired hold for one of the
requested tables overlaps the requested half-open interval. Rows from the
neighbouring dates are shifted by a day so that slots crossing midnight are
compared on one axis.
"""

from datetime import date, datetime, timezone

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from tablebook.common.logging import logger
from tablebook.common.timeslots import interval, overlaps
from tablebook.services.reservations.locks import neighbouring_dates
from tablebook.services.reservations.models import PAID, Booking, Hold

BOOKING_CONFLICT = "conflict"
HOLD_CONFLICT = "hold_conflict"
STORE_ERROR = "store_error"


class SlotRequest(BaseModel):
    """A candidate reservation of one or more tables."""

    tenant_id: str = Field(min_length=1)
    table_ids: list[int] = Field(min_length=1)
    booking_date: date
    start_time: str
    end_time: str


class Conflict(BaseModel):
    """Why a slot is unavailable."""

    reason: str
    table_id: int | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConflictDetector:
    """Reads the Booking Store for rows overlapping a requested slot."""

    def __init__(self, session_factory=None, clock=_utcnow) -> None:
        self.session_factory = session_factory
        self.clock = clock

    def find_conflict(self, db, slot: SlotRequest, include_holds: bool = True) -> Conflict | None:
        """Return the first overlapping booking or active hold, if any.

        Store errors propagate; callers that must fail closed use `check`.
        """

        requested = interval(slot.start_time, slot.end_time)
        dates = neighbouring_dates(slot.booking_date)

        bookings = db.execute(
            select(Booking).where(
                Booking.tenant_id == slot.tenant_id,
                Booking.table_id.in_(slot.table_ids),
                Booking.booking_date.in_(dates),
                Booking.payment_status == PAID,
            )
        ).scalars()
        for booking in bookings:
            offset = (booking.booking_date - slot.booking_date).days
            if overlaps(*requested, *interval(booking.start_time, booking.end_time, offset)):
                return Conflict(reason=BOOKING_CONFLICT, table_id=booking.table_id)

        if not include_holds:
            return None

        holds = db.execute(
            select(Hold).where(
                Hold.tenant_id == slot.tenant_id,
                Hold.table_id.in_(slot.table_ids),
                Hold.booking_date.in_(dates),
                Hold.expires_at > self.clock(),
            )
        ).scalars()
        for hold in holds:
            offset = (hold.booking_date - slot.booking_date).days
            if overlaps(*requested, *interval(hold.start_time, hold.end_time, offset)):
                return Conflict(reason=HOLD_CONFLICT, table_id=hold.table_id)
        return None

    def check(self, slot: SlotRequest, include_holds: bool = True) -> Conflict | None:
        """Standalone availability check in its own session; store errors count as conflicts."""

        try:
            with self.session_factory() as db:
                return self.find_conflict(db, slot, include_holds=include_holds)
        except SQLAlchemyError as exc:
            logger.error("conflict_check_failed tenant_id=%s tables=%s error=%s", slot.tenant_id, slot.table_ids, exc)
            return Conflict(reason=STORE_ERROR)
