"""Idempotency ledger and auxiliary records written by the webhook."""

from datetime import date, datetime
from uuid import uuid4

from sqlalchemy import Boolean, Date, DateTime, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from tablebook.common.db import Base

PROCESSING = "processing"
COMPLETED = "completed"


class WebhookEvent(Base):
    """One row per provider event id; the primary key is the de-duplication guard."""

    __tablename__ = "webhook_events"

    event_id: Mapped[str] = mapped_column(String, primary_key=True)
    event_type: Mapped[str] = mapped_column(String)
    tenant_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    status: Mapped[str] = mapped_column(String, default=PROCESSING, index=True)
    note: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class EngagementTracking(Base):
    """Funnel analytics per booking reference; never authoritative for booking state."""

    __tablename__ = "engagement_tracking"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    booking_ref: Mapped[str] = mapped_column(String, index=True)
    tenant_id: Mapped[str] = mapped_column(String, index=True)
    event_type: Mapped[str | None] = mapped_column(String, nullable=True)
    checkout_complete: Mapped[bool] = mapped_column(Boolean, default=False)
    payment_successful: Mapped[bool] = mapped_column(Boolean, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class MarketingOptIn(Base):
    """Marketing consent per customer email and tenant."""

    __tablename__ = "marketing_optins"
    __table_args__ = (UniqueConstraint("email", "tenant_id", name="uq_marketing_optins_email_tenant"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    email: Mapped[str] = mapped_column(String)
    tenant_id: Mapped[str] = mapped_column(String)
    booking_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    source: Mapped[str | None] = mapped_column(String, nullable=True)
    consent_text: Mapped[str] = mapped_column(String)
    is_subscribed: Mapped[bool] = mapped_column(Boolean, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
