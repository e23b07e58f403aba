from __future__ import annotations

from kitchenhub.db.base import Base
from kitchenhub.db.session import engine

# Import models to register with SQLAlchemy
import kitchenhub.models  # noqa: F401


def main() -> int:
    Base.metadata.create_all(bind=engine)
    print("DB initialized")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
