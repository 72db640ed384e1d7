"""Delete holds that expired long ago (table hygiene only)."""

import argparse

from tablebook.common.config import settings
from tablebook.common.db import make_engine, make_session_factory
from tablebook.services.reservations.conflicts import ConflictDetector
from tablebook.services.reservations.holds import HoldManager


def main() -> None:
    """CLI entrypoint for one purge pass."""

    parser = argparse.ArgumentParser(description="Purge expired table holds.")
    parser.add_argument("--dsn", default=settings.postgres_dsn)
    parser.add_argument("--grace-minutes", type=int, default=settings.hold_reaper_grace_minutes)
    args = parser.parse_args()

    engine = make_engine(args.dsn)
    try:
        session_factory = make_session_factory(engine)
        manager = HoldManager(session_factory, ConflictDetector(session_factory))
        purged = manager.purge_expired(args.grace_minutes)
    finally:
        engine.dispose()
    print(f"purged {purged} expired holds")


if __name__ == "__main__":
    main()
