from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from kitchenhub.db.base import Base


class LegacyLocationAccess(Base):
    """Direct access grants from before qualification records existed.

    Read-only: kept for migration reporting, never consulted when booking.
    """

    __tablename__ = "legacy_location_access"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    requester_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    location_id: Mapped[str] = mapped_column(String(36), ForeignKey("locations.id"), nullable=False, index=True)
    granted_by: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
