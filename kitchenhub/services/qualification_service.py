from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from kitchenhub.core.exceptions import (
    ConcurrentUpdateError,
    KitchenHubError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from kitchenhub.models.qualification import (
    BOOKING_GATE_STAGE,
    DOCUMENT_APPROVED,
    DOCUMENT_KINDS,
    DOCUMENT_PENDING,
    DOCUMENT_REJECTED,
    FIRST_STAGE,
    LAST_STAGE,
    STATUS_APPROVED,
    STATUS_CANCELLED,
    STATUS_IN_REVIEW,
    STATUS_REJECTED,
    QualificationRecord,
)
from kitchenhub.models.requirements import LocationRequirements
from kitchenhub.services import events
from kitchenhub.services.kitchen_service import get_location
from kitchenhub.services.requirements_service import (
    DOCUMENT_FIELDS,
    FIELD_LICENSE_NUMBER,
    RequirementCheck,
    check_requirements,
    get_requirements,
    has_value,
)

logger = structlog.get_logger(__name__)

# Timestamp stamped when a record reaches each stage
_STAGE_STAMPS = {
    2: "stage1_completed_at",
    3: "stage2_completed_at",
    4: "stage3_submitted_at",
}

# Requirements that must pass before reaching a stage. Stage 3 and 4 entries
# are informational and carry no check.
_STAGE_CHECKS = {
    2: 1,
    3: BOOKING_GATE_STAGE,
}

_DOCUMENT_STATUSES = (DOCUMENT_PENDING, DOCUMENT_APPROVED, DOCUMENT_REJECTED)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _commit(db: Session) -> None:
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConcurrentUpdateError("Application was modified concurrently, reload and retry") from exc


def get_record(db: Session, record_id: str) -> QualificationRecord:
    record = db.get(QualificationRecord, record_id)
    if not record:
        raise NotFoundError("Application not found")
    return record


def find_record(db: Session, *, requester_id: str, location_id: str) -> QualificationRecord | None:
    return db.execute(
        select(QualificationRecord).where(
            QualificationRecord.requester_id == requester_id,
            QualificationRecord.location_id == location_id,
        )
    ).scalar_one_or_none()


def _get_record_for_update(db: Session, record_id: str) -> QualificationRecord:
    # row lock where the backend supports it; the version column catches the rest
    record = db.execute(
        select(QualificationRecord)
        .where(QualificationRecord.id == record_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if not record:
        raise NotFoundError("Application not found")
    return record


def list_applications(db: Session, *, location_id: str, status: str | None = None) -> list[QualificationRecord]:
    q = select(QualificationRecord).where(QualificationRecord.location_id == location_id)
    if status:
        q = q.where(QualificationRecord.status == status)
    return list(db.execute(q.order_by(QualificationRecord.created_at.desc())).scalars().all())


def list_requester_applications(db: Session, *, requester_id: str) -> list[QualificationRecord]:
    q = (
        select(QualificationRecord)
        .where(QualificationRecord.requester_id == requester_id)
        .order_by(QualificationRecord.created_at.desc())
    )
    return list(db.execute(q).scalars().all())


def _pending_documents_for(data: dict[str, Any], previous: dict[str, Any] | None = None) -> dict[str, str]:
    """Document kinds whose upload is new or replaced and must be verified again."""
    statuses: dict[str, str] = {}
    for key, kind in DOCUMENT_FIELDS.items():
        if key not in data or not has_value(data[key]):
            continue
        if previous is not None and previous.get(key) == data[key]:
            continue
        statuses[kind] = DOCUMENT_PENDING
    return statuses


def submit_qualification(db: Session, *, requester_id: str, location_id: str, data: dict[str, Any]) -> QualificationRecord:
    """Create an application, re-apply after rejection, or add later-stage data.

    A rejected or cancelled application starts over in review with the fresh
    submission. Completion timestamps and the reached stage are kept.
    """
    location = get_location(db, location_id)
    if not location.active:
        raise NotFoundError("Location not found")

    record = find_record(db, requester_id=requester_id, location_id=location_id)

    if record is None:
        record = QualificationRecord(
            requester_id=requester_id,
            location_id=location_id,
            status=STATUS_IN_REVIEW,
            current_stage=FIRST_STAGE,
            stage_data=dict(data),
            document_statuses=_pending_documents_for(data),
            feedback="",
        )
        db.add(record)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise ConcurrentUpdateError("An application for this location was submitted concurrently") from exc
        db.refresh(record)
        logger.info("qualification_submitted", record_id=record.id, requester_id=requester_id, location_id=location_id)
        return record

    if record.status in (STATUS_REJECTED, STATUS_CANCELLED):
        previous_status = record.status
        record.status = STATUS_IN_REVIEW
        record.feedback = ""
        record.stage_data = dict(data)
        record.document_statuses = _pending_documents_for(data)
        logger.info("qualification_reapplied", record_id=record.id, previous_status=previous_status)
    else:
        previous = dict(record.stage_data or {})
        record.stage_data = {**previous, **data}
        record.document_statuses = {**(record.document_statuses or {}), **_pending_documents_for(data, previous)}
        logger.info("qualification_updated", record_id=record.id, fields=sorted(data.keys()))

    _commit(db)
    db.refresh(record)
    return record


def _requirements_for_record(db: Session, record_id: str) -> LocationRequirements:
    # loaded before the record is locked, creating the defaults row commits
    return get_requirements(db, get_record(db, record_id).location_id)


def _reach_stage(record: QualificationRecord, requirements: LocationRequirements, target_stage: int) -> list[int]:
    """Apply every transition up to ``target_stage`` whose timestamp is still unset.

    The stamps drive the walk, not ``current_stage``, so a record whose stage
    number was raised without the matching check still has to pass it.
    Raises before anything is stamped if a check fails.
    """
    reached: list[int] = []
    stamped_at = _now()

    for stage in range(FIRST_STAGE + 1, target_stage + 1):
        attr = _STAGE_STAMPS[stage]
        if getattr(record, attr) is not None:
            continue
        check_stage = _STAGE_CHECKS.get(stage)
        if check_stage is not None:
            result: RequirementCheck = check_requirements(record, requirements, check_stage)
            if not result.valid:
                raise ValidationError(
                    f"Stage {check_stage} requirements are not met",
                    content={"missing_requirements": result.missing_requirements},
                )
        reached.append(stage)

    for stage in reached:
        setattr(record, _STAGE_STAMPS[stage], stamped_at)
    record.current_stage = max(record.current_stage, target_stage)
    return reached


def _publish_stages(record: QualificationRecord, stages: list[int], reviewer_id: str | None) -> None:
    for stage in stages:
        events.publish_event(
            events.STAGE_ADVANCED,
            {
                "record_id": record.id,
                "requester_id": record.requester_id,
                "location_id": record.location_id,
                "stage": stage,
                "booking_unlocked": stage == BOOKING_GATE_STAGE + 1,
                "reviewer_id": reviewer_id,
            },
        )


def advance_stage(db: Session, *, record_id: str, target_stage: int, reviewer_id: str | None = None) -> QualificationRecord:
    """Move an application forward, running the requirement check of each stage passed.

    This is the only code path that stamps ``stage2_completed_at``, the
    booking gate. Re-issuing a stage that is already reached changes nothing.
    """
    if not FIRST_STAGE < target_stage <= LAST_STAGE:
        raise ValidationError(f"Target stage must be between {FIRST_STAGE + 1} and {LAST_STAGE}")

    requirements = _requirements_for_record(db, record_id)
    try:
        record = _get_record_for_update(db, record_id)
        if record.status in (STATUS_REJECTED, STATUS_CANCELLED):
            raise ValidationError(f"Cannot advance an application that is {record.status}")
        if target_stage < record.current_stage:
            raise ValidationError("Stages only move forward")

        reached = _reach_stage(record, requirements, target_stage)
        if reached:
            record.reviewed_by = reviewer_id
            record.reviewed_at = _now()
        _commit(db)
    except KitchenHubError:
        db.rollback()
        raise

    db.refresh(record)
    if reached:
        logger.info("qualification_stage_advanced", record_id=record.id, stages=reached, reviewer_id=reviewer_id)
        _publish_stages(record, reached, reviewer_id)
    return record


def review_application(
    db: Session,
    *,
    record_id: str,
    approve: bool,
    reviewer_id: str,
    feedback: str = "",
) -> QualificationRecord:
    """Approve (enforcing stage-1 requirements and advancing to stage 2) or reject."""
    reached: list[int] = []
    requirements = _requirements_for_record(db, record_id)
    try:
        record = _get_record_for_update(db, record_id)
        if record.status == STATUS_CANCELLED:
            raise ValidationError("Application was cancelled by the applicant")

        if approve:
            reached = _reach_stage(record, requirements, max(record.current_stage, BOOKING_GATE_STAGE))
            record.status = STATUS_APPROVED
        else:
            if not feedback.strip():
                raise ValidationError("Feedback is required when rejecting an application")
            record.status = STATUS_REJECTED

        record.feedback = feedback[:2000]
        record.reviewed_by = reviewer_id
        record.reviewed_at = _now()
        _commit(db)
    except KitchenHubError:
        db.rollback()
        raise

    db.refresh(record)
    logger.info("qualification_reviewed", record_id=record.id, status=record.status, reviewer_id=reviewer_id)
    events.publish_event(
        events.APPLICATION_REVIEWED,
        {
            "record_id": record.id,
            "requester_id": record.requester_id,
            "location_id": record.location_id,
            "status": record.status,
            "feedback": record.feedback,
            "reviewer_id": reviewer_id,
        },
    )
    _publish_stages(record, reached, reviewer_id)
    return record


def verify_documents(db: Session, *, record_id: str, statuses: dict[str, str], reviewer_id: str) -> QualificationRecord:
    """Record the verification outcome of uploaded documents."""
    for kind, status in statuses.items():
        if kind not in DOCUMENT_KINDS:
            raise ValidationError(f"Unknown document kind: {kind}")
        if status not in _DOCUMENT_STATUSES:
            raise ValidationError(f"Unknown document status: {status}")

    try:
        record = _get_record_for_update(db, record_id)
        record.document_statuses = {**(record.document_statuses or {}), **statuses}
        record.reviewed_by = reviewer_id
        record.reviewed_at = _now()
        _commit(db)
    except KitchenHubError:
        db.rollback()
        raise

    db.refresh(record)
    logger.info("qualification_documents_verified", record_id=record.id, statuses=statuses)
    return record


def record_license(db: Session, *, record_id: str, license_number: str, reviewer_id: str | None = None) -> QualificationRecord:
    """Store the licence number and stamp stage 4 completion once."""
    if not license_number.strip():
        raise ValidationError("License number is required")

    stamped = False
    try:
        record = _get_record_for_update(db, record_id)
        if record.stage3_submitted_at is None:
            raise ValidationError("The licensing step has not been submitted yet")
        record.stage_data = {**(record.stage_data or {}), FIELD_LICENSE_NUMBER: license_number.strip()}
        if record.stage4_completed_at is None:
            record.stage4_completed_at = _now()
            stamped = True
        _commit(db)
    except KitchenHubError:
        db.rollback()
        raise

    db.refresh(record)
    if stamped:
        logger.info("qualification_license_recorded", record_id=record.id)
        events.publish_event(
            events.STAGE_ADVANCED,
            {
                "record_id": record.id,
                "requester_id": record.requester_id,
                "location_id": record.location_id,
                "stage": LAST_STAGE,
                "booking_unlocked": False,
                "reviewer_id": reviewer_id,
            },
        )
    return record


def cancel_application(db: Session, *, record_id: str, requester_id: str) -> QualificationRecord:
    try:
        record = _get_record_for_update(db, record_id)
        if record.requester_id != requester_id:
            raise PermissionDeniedError("Not your application")
        if record.status != STATUS_CANCELLED:
            record.status = STATUS_CANCELLED
            _commit(db)
    except KitchenHubError:
        db.rollback()
        raise

    db.refresh(record)
    return record


def is_booking_eligible(record: QualificationRecord | None) -> bool:
    return record is not None and record.status == STATUS_APPROVED and record.stage2_completed_at is not None


def can_book(db: Session, *, requester_id: str, location_id: str) -> bool:
    return is_booking_eligible(find_record(db, requester_id=requester_id, location_id=location_id))


def get_application_status(db: Session, *, requester_id: str, location_id: str) -> dict[str, Any]:
    get_location(db, location_id)
    record = find_record(db, requester_id=requester_id, location_id=location_id)
    if record is None:
        return {
            "has_application": False,
            "status": None,
            "current_stage": None,
            "can_book": False,
            "message": "You must apply to this location before booking its kitchens",
        }

    eligible = is_booking_eligible(record)
    if eligible:
        message = "You can book kitchens at this location"
    elif record.status == STATUS_IN_REVIEW:
        message = "Your application is under review"
    elif record.status == STATUS_REJECTED:
        message = "Your application was rejected, you may re-apply"
    elif record.status == STATUS_CANCELLED:
        message = "Your application was cancelled, you may re-apply"
    else:
        message = "Complete the stage 2 requirements to unlock booking"

    return {
        "has_application": True,
        "status": record.status,
        "current_stage": record.current_stage,
        "can_book": eligible,
        "message": message,
    }
