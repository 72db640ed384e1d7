"""List webhook ledger rows stuck in `processing`.

A row that never reached `completed` means a payment event whose fulfillment
was interrupted; each one needs a manual look at the matching bookings.
"""

import argparse
import json
from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from tablebook.common.config import settings
from tablebook.common.db import make_engine, make_session_factory
from tablebook.services.webhook.models import PROCESSING, WebhookEvent


def main() -> None:
    """CLI entrypoint for the stalled-event report."""

    parser = argparse.ArgumentParser(description="Report webhook events stuck in processing.")
    parser.add_argument("--dsn", default=settings.postgres_dsn)
    parser.add_argument("--older-than-seconds", type=int, default=settings.webhook_stall_seconds)
    parser.add_argument("--limit", type=int, default=200)
    args = parser.parse_args()

    engine = make_engine(args.dsn)
    cutoff = datetime.now(timezone.utc) - timedelta(seconds=args.older_than_seconds)
    try:
        with make_session_factory(engine)() as db:
            rows = db.execute(
                select(WebhookEvent)
                .where(WebhookEvent.status == PROCESSING, WebhookEvent.updated_at < cutoff)
                .order_by(WebhookEvent.updated_at)
                .limit(args.limit)
            ).scalars().all()
    finally:
        engine.dispose()

    report = [
        {
            "event_id": row.event_id,
            "event_type": row.event_type,
            "tenant_id": row.tenant_id,
            "note": row.note,
            "since": row.updated_at.isoformat() if row.updated_at else None,
        }
        for row in rows
    ]
    print(json.dumps({"stalled": len(report), "events": report}, indent=2))
    raise SystemExit(1 if report else 0)


if __name__ == "__main__":
    main()
