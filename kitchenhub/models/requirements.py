from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from kitchenhub.db.base import Base
from kitchenhub.models._mixins import TimestampMixin


class LocationRequirements(Base, TimestampMixin):
    """Per-location configuration of what each qualification stage demands."""

    __tablename__ = "location_requirements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    location_id: Mapped[str] = mapped_column(String(36), ForeignKey("locations.id"), nullable=False, unique=True, index=True)

    # Stage 1: application basics
    stage1_full_name_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    stage1_email_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    stage1_phone_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    stage1_business_description_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    stage1_food_safety_license_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    stage1_food_safety_license_expiry_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    stage1_years_experience_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    stage1_years_experience_minimum: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Stage 2: kitchen coordination (unlocks booking)
    stage2_food_establishment_cert_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    stage2_food_establishment_expiry_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    stage2_insurance_document_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    stage2_kitchen_experience_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Ordered list of {id, label, type, required, stage, options?, placeholder?}
    custom_fields: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    updated_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
