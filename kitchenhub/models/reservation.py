from __future__ import annotations

import uuid
from datetime import date, datetime, time

from sqlalchemy import Date, DateTime, ForeignKey, String, Time
from sqlalchemy.orm import Mapped, mapped_column

from kitchenhub.db.base import Base
from kitchenhub.models._mixins import TimestampMixin

RESERVATION_PENDING = "pending"
RESERVATION_CONFIRMED = "confirmed"
RESERVATION_CANCELLED = "cancelled"

BOOKING_TYPE_CHEF = "chef"
BOOKING_TYPE_EXTERNAL = "external"


class Reservation(Base, TimestampMixin):
    __tablename__ = "reservations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    kitchen_id: Mapped[str] = mapped_column(String(36), ForeignKey("kitchens.id"), nullable=False, index=True)

    # Null for third-party bookings entered by a manager
    requester_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    booking_type: Mapped[str] = mapped_column(String(32), nullable=False, default=BOOKING_TYPE_CHEF)  # chef/external
    created_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    external_contact_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    external_contact_email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    external_contact_phone: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    external_contact_company: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    booking_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default=RESERVATION_PENDING)  # pending/confirmed/cancelled
    special_notes: Mapped[str] = mapped_column(String(2000), nullable=False, default="")

    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_reason: Mapped[str] = mapped_column(String(255), nullable=False, default="")
