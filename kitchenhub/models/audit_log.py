from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from kitchenhub.db.base import Base
from kitchenhub.models._mixins import utcnow


class AuditLog(Base):
    """Append-only trail of operator and requester writes."""

    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    actor_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    action_type: Mapped[str] = mapped_column(String(64), nullable=False)

    # kitchen, location, reservation, qualification, requirements
    target_type: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    target_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    summary: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    diff_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # ties the entry to the structured log lines of the same request
    request_id: Mapped[str] = mapped_column(String(64), nullable=False, default="", index=True)
    ip_address: Mapped[str] = mapped_column(String(64), nullable=False, default="")
