from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import Date, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from kitchenhub.db.base import Base


class KitchenDayLedger(Base):
    """One row per (kitchen, date) that has ever been booked.

    ``version`` is bumped with a conditional UPDATE by every reservation insert
    for that day. A writer that read a stale version updates zero rows and
    must re-check capacity, so two requests can never both take the last seat.
    """

    __tablename__ = "kitchen_day_ledgers"
    __table_args__ = (UniqueConstraint("kitchen_id", "booking_date", name="uq_ledger_kitchen_date"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    kitchen_id: Mapped[str] = mapped_column(String(36), ForeignKey("kitchens.id"), nullable=False, index=True)
    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
