from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class QualificationSubmit(BaseModel):
    location_id: str
    # field id -> value, standard and custom fields alike
    data: dict[str, Any] = Field(default_factory=dict)


class ApplicationReview(BaseModel):
    approve: bool
    feedback: str = Field(default="", max_length=2000)


class StageAdvanceRequest(BaseModel):
    target_stage: int = Field(ge=2, le=4)


class DocumentVerification(BaseModel):
    statuses: dict[
        Literal["food_safety_license", "food_establishment_cert", "insurance_document"],
        Literal["pending", "approved", "rejected"],
    ]


class LicenseEntry(BaseModel):
    license_number: str = Field(min_length=1, max_length=128)


class RequirementCheckOut(BaseModel):
    valid: bool
    missing_requirements: list[str]

    class Config:
        from_attributes = True


class QualificationOut(BaseModel):
    id: str
    requester_id: str
    location_id: str
    status: str
    current_stage: int
    stage1_completed_at: datetime | None
    stage2_completed_at: datetime | None
    stage3_submitted_at: datetime | None
    stage4_completed_at: datetime | None
    stage_data: dict[str, Any]
    document_statuses: dict[str, str]
    feedback: str
    reviewed_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class ApplicationStatusOut(BaseModel):
    has_application: bool
    status: str | None
    current_stage: int | None
    can_book: bool
    message: str
