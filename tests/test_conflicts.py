"""Conflict detection against paid bookings and active holds."""

from datetime import date, time, timedelta

from tablebook.services.reservations.conflicts import (
    BOOKING_CONFLICT,
    HOLD_CONFLICT,
    STORE_ERROR,
    ConflictDetector,
    SlotRequest,
)
from tablebook.services.reservations.models import PAID, Booking, Hold


def _slot(start="10:00", end="12:00", tables=(5,), booking_date=date(2025, 6, 1), tenant="t1"):
    return SlotRequest(
        tenant_id=tenant,
        table_ids=list(tables),
        booking_date=booking_date,
        start_time=start,
        end_time=end,
    )


def _booking(db, start, end, status=PAID, table_id=5, booking_date=date(2025, 6, 1), tenant="t1"):
    hour, minute = map(int, start.split(":"))
    end_hour, end_minute = map(int, end.split(":"))
    db.add(
        Booking(
            tenant_id=tenant,
            table_id=table_id,
            booking_date=booking_date,
            start_time=time(hour, minute),
            end_time=time(end_hour, end_minute),
            payment_status=status,
        )
    )
    db.commit()


def _hold(db, expires_at, start="10:00", end="12:00", table_id=5):
    db.add(
        Hold(
            tenant_id="t1",
            table_id=table_id,
            booking_ref="other",
            booking_date=date(2025, 6, 1),
            start_time=time.fromisoformat(start),
            end_time=time.fromisoformat(end),
            expires_at=expires_at,
        )
    )
    db.commit()


def test_adjacent_paid_booking_is_not_a_conflict(session_factory, clock):
    detector = ConflictDetector(session_factory, clock=clock)
    with session_factory() as db:
        _booking(db, "12:00", "14:00")
    assert detector.check(_slot("10:00", "12:00")) is None


def test_overlapping_paid_booking_is_a_conflict(session_factory, clock):
    detector = ConflictDetector(session_factory, clock=clock)
    with session_factory() as db:
        _booking(db, "11:00", "13:00")
    conflict = detector.check(_slot("10:00", "12:00"))
    assert conflict is not None
    assert conflict.reason == BOOKING_CONFLICT
    assert conflict.table_id == 5


def test_unpaid_booking_does_not_block(session_factory, clock):
    detector = ConflictDetector(session_factory, clock=clock)
    with session_factory() as db:
        _booking(db, "10:00", "12:00", status=None)
    assert detector.check(_slot()) is None


def test_other_tables_and_tenants_do_not_block(session_factory, clock):
    detector = ConflictDetector(session_factory, clock=clock)
    with session_factory() as db:
        _booking(db, "10:00", "12:00", table_id=6)
        _booking(db, "10:00", "12:00", tenant="t2")
    assert detector.check(_slot()) is None


def test_active_hold_blocks_but_expired_hold_does_not(session_factory, clock):
    detector = ConflictDetector(session_factory, clock=clock)
    with session_factory() as db:
        _hold(db, clock() - timedelta(seconds=1))
    assert detector.check(_slot()) is None

    with session_factory() as db:
        _hold(db, clock() + timedelta(minutes=5), start="11:30", end="13:30")
    conflict = detector.check(_slot())
    assert conflict.reason == HOLD_CONFLICT


def test_holds_can_be_excluded_from_the_check(session_factory, clock):
    detector = ConflictDetector(session_factory, clock=clock)
    with session_factory() as db:
        _hold(db, clock() + timedelta(minutes=5))
        assert detector.find_conflict(db, _slot(), include_holds=False) is None


def test_previous_day_booking_crossing_midnight_blocks_early_slot(session_factory, clock):
    """A 23:00-01:00 booking on May 31 overlaps a 00:30 slot on June 1."""

    detector = ConflictDetector(session_factory, clock=clock)
    with session_factory() as db:
        _booking(db, "23:00", "01:00", booking_date=date(2025, 5, 31))
    assert detector.check(_slot("00:30", "02:30")).reason == BOOKING_CONFLICT
    assert detector.check(_slot("01:00", "03:00")) is None


def test_late_slot_sees_next_day_early_booking(session_factory, clock):
    detector = ConflictDetector(session_factory, clock=clock)
    with session_factory() as db:
        _booking(db, "00:00", "02:00", booking_date=date(2025, 6, 2))
    assert detector.check(_slot("23:00", "01:00")).reason == BOOKING_CONFLICT


def test_store_error_fails_closed(broken_session_factory, clock):
    """If the store cannot be read the slot is treated as unavailable."""

    detector = ConflictDetector(broken_session_factory, clock=clock)
    conflict = detector.check(_slot())
    assert conflict is not None
    assert conflict.reason == STORE_ERROR
