"""Short-lived pre-payment holds on tables.

Placement runs check and insert inside one transaction holding the slot
locks, so two concurrent placements for overlapping slots cannot both succeed.
Holds are never cancelled; they stop counting once `expires_at` passes.
"""

from datetime import datetime, timedelta

from pydantic import BaseModel
from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError

from tablebook.common.errors import TransientStoreError
from tablebook.common.logging import logger
from tablebook.common.metrics import expired_holds_purged_total, hold_conflicts_total, holds_placed_total
from tablebook.common.timeslots import parse_time
from tablebook.services.reservations.conflicts import STORE_ERROR, ConflictDetector, SlotRequest
from tablebook.services.reservations.locks import lock_slots
from tablebook.services.reservations.models import Hold


class HoldResult(BaseModel):
    """Outcome of one placement attempt."""

    conflict: bool
    reason: str | None = None
    conflicting_table_id: int | None = None
    expires_at: datetime | None = None


class HoldManager:
    """Places, expires and purges holds."""

    def __init__(
        self,
        session_factory,
        detector: ConflictDetector,
        hold_minutes: int = 5,
        service_name: str = "tablebook-api",
    ) -> None:
        self.session_factory = session_factory
        self.detector = detector
        self.hold_minutes = hold_minutes
        self.service_name = service_name

    def place_hold(self, slot: SlotRequest, booking_ref: str) -> HoldResult:
        """Insert one hold per table unless an overlapping hold or paid booking exists."""

        with self.session_factory() as db:
            try:
                lock_slots(db, slot.tenant_id, slot.table_ids, slot.booking_date)
                conflict = self.detector.find_conflict(db, slot)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error("hold_check_failed booking_ref=%s error=%s", booking_ref, exc)
                hold_conflicts_total.labels(service=self.service_name, reason=STORE_ERROR).inc()
                return HoldResult(conflict=True, reason=STORE_ERROR)

            if conflict is not None:
                db.rollback()
                logger.info(
                    "hold_refused booking_ref=%s reason=%s table_id=%s",
                    booking_ref,
                    conflict.reason,
                    conflict.table_id,
                )
                hold_conflicts_total.labels(service=self.service_name, reason=conflict.reason).inc()
                return HoldResult(conflict=True, reason=conflict.reason, conflicting_table_id=conflict.table_id)

            expires_at = self.detector.clock() + timedelta(minutes=self.hold_minutes)
            for table_id in slot.table_ids:
                db.add(
                    Hold(
                        tenant_id=slot.tenant_id,
                        table_id=table_id,
                        booking_ref=booking_ref,
                        booking_date=slot.booking_date,
                        start_time=parse_time(slot.start_time),
                        end_time=parse_time(slot.end_time),
                        expires_at=expires_at,
                    )
                )
            try:
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                raise TransientStoreError(f"could not store holds: {exc}") from exc

        holds_placed_total.labels(service=self.service_name).inc(len(slot.table_ids))
        logger.info("hold_placed booking_ref=%s tables=%s expires_at=%s", booking_ref, slot.table_ids, expires_at)
        return HoldResult(conflict=False, expires_at=expires_at)

    def expire_holds(self, tenant_id: str, booking_ref: str) -> int:
        """End a booking reference's active holds now, e.g. when its checkout could not start."""

        now = self.detector.clock()
        with self.session_factory() as db:
            result = db.execute(
                update(Hold)
                .where(Hold.tenant_id == tenant_id, Hold.booking_ref == booking_ref, Hold.expires_at > now)
                .values(expires_at=now)
            )
            db.commit()
            return result.rowcount

    def purge_expired(self, grace_minutes: int = 60) -> int:
        """Delete holds that expired more than `grace_minutes` ago."""

        cutoff = self.detector.clock() - timedelta(minutes=grace_minutes)
        with self.session_factory() as db:
            result = db.execute(delete(Hold).where(Hold.expires_at < cutoff))
            db.commit()
        purged = result.rowcount or 0
        if purged:
            expired_holds_purged_total.labels(service=self.service_name).inc(purged)
            logger.info("expired_holds_purged count=%s cutoff=%s", purged, cutoff)
        return purged
