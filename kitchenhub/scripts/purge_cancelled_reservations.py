from __future__ import annotations

import argparse
from datetime import datetime, timedelta, timezone

from kitchenhub.core.logging import setup_logging
from kitchenhub.db.session import SessionLocal
from kitchenhub.services.audit_service import write_audit_log
from kitchenhub.services.reservation_service import purge_cancelled_reservations


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Hard-delete reservations cancelled more than N days ago.")
    parser.add_argument("--older-than-days", type=int, default=365)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args(argv)

    if args.older_than_days < 1:
        print("older-than-days must be at least 1")
        return 2

    setup_logging()
    cutoff = datetime.now(tz=timezone.utc) - timedelta(days=args.older_than_days)

    db = SessionLocal()
    try:
        count = purge_cancelled_reservations(db, cancelled_before=cutoff, dry_run=args.dry_run)
        if args.dry_run:
            print(f"would_purge: {count}")
            return 0

        write_audit_log(
            db,
            actor_user_id=None,
            action_type="RESERVATION_PURGE",
            target_type="reservation",
            summary=f"Purged {count} cancelled reservations",
            diff_json={"cancelled_before": cutoff.isoformat(), "count": count},
            request=None,
        )
        print(f"purged: {count}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
