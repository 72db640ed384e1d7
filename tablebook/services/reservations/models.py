"""Booking Store models shared by checkout, webhook and admin flows.

`bookings` is the source of truth for paid reservations; `holds` are
provisional claims that expire on their own; `slot_locks` rows exist only to
be locked so that check-then-insert sequences on a table/date serialize.
"""

from datetime import date, datetime, time
from uuid import uuid4

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, String, Time, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from tablebook.common.db import Base

PAID = "PAID"


class Booking(Base):
    """One table reserved for one tenant, date and time range."""

    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint("stripe_order_id", "table_id", name="uq_bookings_order_table"),
        Index("ix_bookings_tenant_date_table", "tenant_id", "date", "table_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    table_id: Mapped[int] = mapped_column(Integer)
    booking_date: Mapped[date] = mapped_column("date", Date)
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)
    payment_status: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    stripe_order_id: Mapped[str | None] = mapped_column(String, nullable=True)
    booking_ref: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    customer_email: Mapped[str | None] = mapped_column(String, nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String, nullable=True)
    party_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_manual: Mapped[bool] = mapped_column(Boolean, default=False)
    receive_offers: Mapped[bool] = mapped_column(Boolean, default=False)
    host_notes: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Hold(Base):
    """Provisional claim on a table while the customer pays; active while `now < expires_at`."""

    __tablename__ = "holds"
    __table_args__ = (Index("ix_holds_tenant_date_table", "tenant_id", "date", "table_id"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    tenant_id: Mapped[str] = mapped_column(String)
    table_id: Mapped[int] = mapped_column(Integer)
    booking_ref: Mapped[str] = mapped_column(String, index=True)
    booking_date: Mapped[date] = mapped_column("date", Date)
    start_time: Mapped[time] = mapped_column(Time)
    end_time: Mapped[time] = mapped_column(Time)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class SlotLock(Base):
    """Lock anchor per tenant/table/date."""

    __tablename__ = "slot_locks"

    tenant_id: Mapped[str] = mapped_column(String, primary_key=True)
    table_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slot_date: Mapped[date] = mapped_column(Date, primary_key=True)


class Tenant(Base):
    """Restaurant metadata used for customer-facing wording."""

    __tablename__ = "tenants"

    tenant_id: Mapped[str] = mapped_column(String, primary_key=True)
    display_name: Mapped[str] = mapped_column(String)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
