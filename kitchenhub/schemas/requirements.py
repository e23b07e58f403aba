from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class CustomFieldDefinition(BaseModel):
    id: str = Field(min_length=1, max_length=64, pattern=r"^[A-Za-z][A-Za-z0-9_]*$")
    label: str = Field(min_length=1, max_length=255)
    type: Literal["text", "textarea", "number", "date", "select", "checkbox", "file"]
    required: bool = False
    stage: int = Field(default=1, ge=1, le=4)
    options: list[str] | None = None
    placeholder: str | None = Field(default=None, max_length=255)


class RequirementsUpdate(BaseModel):
    stage1_full_name_required: bool | None = None
    stage1_email_required: bool | None = None
    stage1_phone_required: bool | None = None
    stage1_business_description_required: bool | None = None
    stage1_food_safety_license_required: bool | None = None
    stage1_food_safety_license_expiry_required: bool | None = None
    stage1_years_experience_required: bool | None = None
    stage1_years_experience_minimum: int | None = Field(default=None, ge=0)

    stage2_food_establishment_cert_required: bool | None = None
    stage2_food_establishment_expiry_required: bool | None = None
    stage2_insurance_document_required: bool | None = None
    stage2_kitchen_experience_required: bool | None = None

    custom_fields: list[CustomFieldDefinition] | None = None


class RequirementsOut(BaseModel):
    location_id: str

    stage1_full_name_required: bool
    stage1_email_required: bool
    stage1_phone_required: bool
    stage1_business_description_required: bool
    stage1_food_safety_license_required: bool
    stage1_food_safety_license_expiry_required: bool
    stage1_years_experience_required: bool
    stage1_years_experience_minimum: int

    stage2_food_establishment_cert_required: bool
    stage2_food_establishment_expiry_required: bool
    stage2_insurance_document_required: bool
    stage2_kitchen_experience_required: bool

    custom_fields: list[CustomFieldDefinition]
    updated_at: datetime | None = None

    class Config:
        from_attributes = True
