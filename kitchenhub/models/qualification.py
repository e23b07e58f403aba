from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from kitchenhub.db.base import Base
from kitchenhub.models._mixins import TimestampMixin

STATUS_IN_REVIEW = "inReview"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
STATUS_CANCELLED = "cancelled"

FIRST_STAGE = 1
BOOKING_GATE_STAGE = 2  # completing this stage unlocks booking
LAST_STAGE = 4

DOCUMENT_FOOD_SAFETY_LICENSE = "food_safety_license"
DOCUMENT_FOOD_ESTABLISHMENT_CERT = "food_establishment_cert"
DOCUMENT_INSURANCE = "insurance_document"
DOCUMENT_KINDS = (DOCUMENT_FOOD_SAFETY_LICENSE, DOCUMENT_FOOD_ESTABLISHMENT_CERT, DOCUMENT_INSURANCE)

DOCUMENT_PENDING = "pending"
DOCUMENT_APPROVED = "approved"
DOCUMENT_REJECTED = "rejected"


class QualificationRecord(Base, TimestampMixin):
    """A requester's application to book kitchens at one location.

    The ``stage*_at`` columns are written once and never cleared. Only
    ``qualification_service.advance_stage`` may set ``stage2_completed_at``,
    the booking gate.
    """

    __tablename__ = "qualification_records"
    __table_args__ = (UniqueConstraint("requester_id", "location_id", name="uq_qualification_requester_location"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    requester_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    location_id: Mapped[str] = mapped_column(String(36), ForeignKey("locations.id"), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_IN_REVIEW)
    current_stage: Mapped[int] = mapped_column(Integer, nullable=False, default=FIRST_STAGE)

    stage1_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    stage2_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    stage3_submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    stage4_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Flat map of field id -> submitted value, standard fields and custom fields alike
    stage_data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    # document kind -> pending/approved/rejected, written by document verification
    document_statuses: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    feedback: Mapped[str] = mapped_column(String(2000), nullable=False, default="")
    reviewed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
