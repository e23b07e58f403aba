from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kitchenhub.db.base import Base
from kitchenhub.models._mixins import TimestampMixin


class Location(Base, TimestampMixin):
    """A site owning one or more kitchens. Qualification requirements and
    records are scoped to the location, so clearing the gate once unlocks every
    kitchen it owns."""

    __tablename__ = "locations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # Operator allowed to manage kitchens, schedules and applications here
    manager_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    kitchens: Mapped[list["Kitchen"]] = relationship("Kitchen", back_populates="location")


class Kitchen(Base, TimestampMixin):
    __tablename__ = "kitchens"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    location_id: Mapped[str] = mapped_column(String(36), ForeignKey("locations.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(String(2000), nullable=False, default="")
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Used when an open date override does not carry its own capacity
    default_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    minimum_booking_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=60)

    location: Mapped[Location] = relationship("Location", back_populates="kitchens")
