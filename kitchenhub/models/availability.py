from __future__ import annotations

import uuid
from datetime import date, time

from sqlalchemy import Boolean, Date, ForeignKey, Integer, String, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from kitchenhub.db.base import Base
from kitchenhub.models._mixins import TimestampMixin


class WeeklyRule(Base, TimestampMixin):
    """Recurring opening hours of a kitchen for one day of the week."""

    __tablename__ = "kitchen_weekly_rules"
    __table_args__ = (UniqueConstraint("kitchen_id", "day_of_week", name="uq_weekly_rule_kitchen_day"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    kitchen_id: Mapped[str] = mapped_column(String(36), ForeignKey("kitchens.id"), nullable=False, index=True)

    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)  # 0=Sunday .. 6=Saturday
    is_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class DateOverride(Base, TimestampMixin):
    """Exception to the weekly rule for one calendar date (holiday, custom hours)."""

    __tablename__ = "kitchen_date_overrides"
    __table_args__ = (UniqueConstraint("kitchen_id", "specific_date", name="uq_date_override_kitchen_date"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    kitchen_id: Mapped[str] = mapped_column(String(36), ForeignKey("kitchens.id"), nullable=False, index=True)

    specific_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    is_open: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)  # false = closed all day
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    reason: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    created_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
