"""Row locks that serialize check-then-insert work on a table/date."""

from datetime import date, timedelta

from sqlalchemy import select

from tablebook.common.db import dialect_insert
from tablebook.services.reservations.models import SlotLock


def neighbouring_dates(booking_date: date) -> list[date]:
    """Dates whose rows can overlap a slot starting on `booking_date`."""

    return [booking_date - timedelta(days=1), booking_date, booking_date + timedelta(days=1)]


def lock_slots(db, tenant_id: str, table_ids: list[int], booking_date: date) -> None:
    """Take `FOR UPDATE` locks on every (table, date) the slot can touch.

    Must run inside the transaction that performs the check and the insert.
    Rows are created on first use and always locked in sorted order.
    """

    dates = neighbouring_dates(booking_date)
    keys = [
        {"tenant_id": tenant_id, "table_id": table_id, "slot_date": slot_date}
        for table_id in sorted(set(table_ids))
        for slot_date in dates
    ]
    db.execute(
        dialect_insert(db, SlotLock)
        .values(keys)
        .on_conflict_do_nothing(index_elements=["tenant_id", "table_id", "slot_date"])
    )
    db.execute(
        select(SlotLock)
        .where(
            SlotLock.tenant_id == tenant_id,
            SlotLock.table_id.in_(sorted(set(table_ids))),
            SlotLock.slot_date.in_(dates),
        )
        .order_by(SlotLock.table_id, SlotLock.slot_date)
        .with_for_update()
    ).all()
