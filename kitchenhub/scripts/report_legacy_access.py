"""List legacy direct access grants whose holder has not cleared the booking gate.

Those requesters lost booking access when qualification records became the only
gate; operators use this list to invite them to apply.
"""

from __future__ import annotations

import argparse

from sqlalchemy import select
from sqlalchemy.orm import Session

from kitchenhub.db.session import SessionLocal
from kitchenhub.models.legacy_access import LegacyLocationAccess
from kitchenhub.services.qualification_service import can_book


def unqualified_grants(db: Session, *, location_id: str | None = None) -> list[LegacyLocationAccess]:
    q = select(LegacyLocationAccess).order_by(LegacyLocationAccess.location_id, LegacyLocationAccess.granted_at)
    if location_id:
        q = q.where(LegacyLocationAccess.location_id == location_id)
    grants = db.execute(q).scalars().all()
    return [g for g in grants if not can_book(db, requester_id=g.requester_id, location_id=g.location_id)]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--location-id", default=None)
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        rows = unqualified_grants(db, location_id=args.location_id)
        for g in rows:
            print(f"{g.location_id}\t{g.requester_id}\tgranted {g.granted_at.date().isoformat()} by {g.granted_by or '-'}")
        print(f"unqualified: {len(rows)}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
