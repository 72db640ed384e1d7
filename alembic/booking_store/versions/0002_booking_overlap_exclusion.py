"""forbid overlapping paid bookings per table

Revision ID: 0002_booking_overlap_exclusion
Revises: 0001_booking_store
Create Date: 2026-10-19
"""

from alembic import op


revision = "0002_booking_overlap_exclusion"
down_revision = "0001_booking_store"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
    op.execute(
        """
        ALTER TABLE bookings
          ADD COLUMN booking_span tsrange
          GENERATED ALWAYS AS (
            tsrange(
              (date::timestamp + start_time),
              CASE
                WHEN end_time <= start_time
                  THEN (date::timestamp + interval '1 day' + end_time)
                ELSE (date::timestamp + end_time)
              END,
              '[)'
            )
          ) STORED
        """
    )
    op.execute(
        """
        ALTER TABLE bookings
          ADD CONSTRAINT bookings_no_overlap_per_table
          EXCLUDE USING gist (
            tenant_id WITH =,
            table_id WITH =,
            booking_span WITH &&
          )
          WHERE (payment_status = 'PAID')
        """
    )


def downgrade() -> None:
    op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS bookings_no_overlap_per_table")
    op.execute("ALTER TABLE bookings DROP COLUMN IF EXISTS booking_span")
