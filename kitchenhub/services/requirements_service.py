from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from kitchenhub.core.exceptions import ValidationError
from kitchenhub.models.qualification import (
    DOCUMENT_APPROVED,
    DOCUMENT_FOOD_ESTABLISHMENT_CERT,
    DOCUMENT_FOOD_SAFETY_LICENSE,
    DOCUMENT_INSURANCE,
    DOCUMENT_REJECTED,
    LAST_STAGE,
)
from kitchenhub.models.requirements import LocationRequirements
from kitchenhub.services.kitchen_service import get_location

# Standard stage_data keys
FIELD_FULL_NAME = "full_name"
FIELD_EMAIL = "email"
FIELD_PHONE = "phone"
FIELD_BUSINESS_DESCRIPTION = "business_description"
FIELD_YEARS_EXPERIENCE = "years_experience"
FIELD_FOOD_SAFETY_LICENSE_URL = "food_safety_license_url"
FIELD_FOOD_SAFETY_LICENSE_EXPIRY = "food_safety_license_expiry"
FIELD_FOOD_ESTABLISHMENT_CERT_URL = "food_establishment_cert_url"
FIELD_FOOD_ESTABLISHMENT_CERT_EXPIRY = "food_establishment_cert_expiry"
FIELD_INSURANCE_DOCUMENT_URL = "insurance_document_url"
FIELD_KITCHEN_EXPERIENCE = "kitchen_experience_description"
FIELD_LICENSE_NUMBER = "license_number"

# stage_data key holding the upload for each verifiable document
DOCUMENT_FIELDS = {
    FIELD_FOOD_SAFETY_LICENSE_URL: DOCUMENT_FOOD_SAFETY_LICENSE,
    FIELD_FOOD_ESTABLISHMENT_CERT_URL: DOCUMENT_FOOD_ESTABLISHMENT_CERT,
    FIELD_INSURANCE_DOCUMENT_URL: DOCUMENT_INSURANCE,
}

CUSTOM_FIELD_TYPES = ("text", "textarea", "number", "date", "select", "checkbox", "file")


@dataclass
class RequirementCheck:
    valid: bool
    missing_requirements: list[str] = field(default_factory=list)


def has_value(value: Any) -> bool:
    """Whether a submitted value counts as filled in.

    ``False`` is a real answer for checkbox fields, so only empty values fail.
    """
    if value is None:
        return False
    if isinstance(value, str) and value.strip() == "":
        return False
    if isinstance(value, (list, tuple, dict)) and len(value) == 0:
        return False
    return True


def _custom_fields_for_stage(requirements: LocationRequirements, stage: int) -> list[dict[str, Any]]:
    return [f for f in (requirements.custom_fields or []) if int(f.get("stage", 1)) == stage]


def _check_custom_fields(requirements: LocationRequirements, stage_data: dict[str, Any], stage: int, missing: list[str]) -> None:
    for f in _custom_fields_for_stage(requirements, stage):
        if f.get("required") and not has_value(stage_data.get(f["id"])):
            missing.append(f"Missing required field: {f.get('label') or f['id']}")


def _check_stage1(requirements: LocationRequirements, stage_data: dict[str, Any], documents: dict[str, str], missing: list[str]) -> None:
    if requirements.stage1_full_name_required and not has_value(stage_data.get(FIELD_FULL_NAME)):
        missing.append("Full name is required")
    if requirements.stage1_email_required and not has_value(stage_data.get(FIELD_EMAIL)):
        missing.append("Email is required")
    if requirements.stage1_phone_required and not has_value(stage_data.get(FIELD_PHONE)):
        missing.append("Phone number is required")
    if requirements.stage1_business_description_required and not has_value(stage_data.get(FIELD_BUSINESS_DESCRIPTION)):
        missing.append("Business description is required")

    if requirements.stage1_food_safety_license_required:
        if documents.get(DOCUMENT_FOOD_SAFETY_LICENSE) != DOCUMENT_APPROVED:
            missing.append("Food Safety License must be approved")
        if requirements.stage1_food_safety_license_expiry_required and not has_value(stage_data.get(FIELD_FOOD_SAFETY_LICENSE_EXPIRY)):
            missing.append("Food Safety License expiry date is required")

    if requirements.stage1_years_experience_required:
        minimum = requirements.stage1_years_experience_minimum or 0
        raw = stage_data.get(FIELD_YEARS_EXPERIENCE)
        try:
            years = float(raw) if has_value(raw) else None
        except (TypeError, ValueError):
            years = None
        if years is None or years < minimum:
            missing.append(f"At least {minimum} years of experience required")

    _check_custom_fields(requirements, stage_data, 1, missing)


def _check_stage2(requirements: LocationRequirements, stage_data: dict[str, Any], documents: dict[str, str], missing: list[str]) -> None:
    if requirements.stage2_food_establishment_cert_required:
        if documents.get(DOCUMENT_FOOD_ESTABLISHMENT_CERT) != DOCUMENT_APPROVED:
            missing.append("Food Establishment Certificate must be approved")
        if requirements.stage2_food_establishment_expiry_required and not has_value(stage_data.get(FIELD_FOOD_ESTABLISHMENT_CERT_EXPIRY)):
            missing.append("Food Establishment Certificate expiry date is required")

    if requirements.stage2_insurance_document_required:
        if not has_value(stage_data.get(FIELD_INSURANCE_DOCUMENT_URL)):
            missing.append("Insurance Document is required")
        elif documents.get(DOCUMENT_INSURANCE) == DOCUMENT_REJECTED:
            missing.append("Insurance Document was rejected")

    if requirements.stage2_kitchen_experience_required and not has_value(stage_data.get(FIELD_KITCHEN_EXPERIENCE)):
        missing.append("Kitchen Experience Description is required")

    _check_custom_fields(requirements, stage_data, 2, missing)


def check_requirements(record, requirements: LocationRequirements, stage: int) -> RequirementCheck:
    """Every unmet requirement for reaching the end of ``stage``.

    Checks are cumulative: stage 2 also re-checks stage 1. Pure function, the
    record and requirements are only read.
    """
    if not 1 <= stage <= LAST_STAGE:
        raise ValidationError(f"Stage must be between 1 and {LAST_STAGE}")

    stage_data = dict(record.stage_data or {})
    documents = dict(record.document_statuses or {})
    missing: list[str] = []

    _check_stage1(requirements, stage_data, documents, missing)
    if stage >= 2:
        _check_stage2(requirements, stage_data, documents, missing)
    for later in range(3, stage + 1):
        _check_custom_fields(requirements, stage_data, later, missing)

    return RequirementCheck(valid=not missing, missing_requirements=missing)


def get_requirements(db: Session, location_id: str) -> LocationRequirements:
    requirements = db.execute(
        select(LocationRequirements).where(LocationRequirements.location_id == location_id)
    ).scalar_one_or_none()
    if requirements is None:
        get_location(db, location_id)
        requirements = LocationRequirements(location_id=location_id, custom_fields=[])
        db.add(requirements)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return db.execute(
                select(LocationRequirements).where(LocationRequirements.location_id == location_id)
            ).scalar_one()
        db.refresh(requirements)
    return requirements


def _validate_custom_fields(fields: list[dict[str, Any]]) -> list[dict[str, Any]]:
    seen: set[str] = set()
    for f in fields:
        field_id = f.get("id")
        if not field_id:
            raise ValidationError("Custom fields need an id")
        if field_id in seen:
            raise ValidationError(f"Duplicate custom field id: {field_id}")
        if field_id in DOCUMENT_FIELDS or field_id in (FIELD_FULL_NAME, FIELD_EMAIL, FIELD_PHONE, FIELD_LICENSE_NUMBER):
            raise ValidationError(f"Custom field id is reserved: {field_id}")
        if f.get("type") not in CUSTOM_FIELD_TYPES:
            raise ValidationError(f"Unsupported custom field type: {f.get('type')}")
        if not 1 <= int(f.get("stage", 1)) <= LAST_STAGE:
            raise ValidationError(f"Custom field stage must be between 1 and {LAST_STAGE}")
        seen.add(field_id)
    return fields


def update_requirements(db: Session, *, location_id: str, changes: dict[str, Any], actor_user_id: str | None = None) -> LocationRequirements:
    requirements = get_requirements(db, location_id)
    if "custom_fields" in changes and changes["custom_fields"] is not None:
        changes = {**changes, "custom_fields": _validate_custom_fields(list(changes["custom_fields"]))}
    if changes.get("stage1_years_experience_minimum") is not None and changes["stage1_years_experience_minimum"] < 0:
        raise ValidationError("Minimum years of experience cannot be negative")

    for k, v in changes.items():
        if v is None:
            continue
        setattr(requirements, k, v)
    requirements.updated_by_user_id = actor_user_id
    db.commit()
    db.refresh(requirements)
    return requirements
