from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from kitchenhub.core.deps import get_current_principal, get_db
from kitchenhub.core.security import Principal
from kitchenhub.schemas.qualification import (
    ApplicationReview,
    DocumentVerification,
    LicenseEntry,
    QualificationOut,
    RequirementCheckOut,
    StageAdvanceRequest,
)
from kitchenhub.schemas.requirements import RequirementsOut, RequirementsUpdate
from kitchenhub.services.audit_service import write_audit_log
from kitchenhub.services.kitchen_service import ensure_location_manager
from kitchenhub.services.qualification_service import (
    advance_stage,
    get_record,
    list_applications,
    record_license,
    review_application,
    verify_documents,
)
from kitchenhub.services.requirements_service import check_requirements, get_requirements, update_requirements

router = APIRouter()


def _managed_record(db: Session, record_id: str, user: Principal):
    record = get_record(db, record_id)
    ensure_location_manager(db, record.location_id, user)
    return record


# ----- requirements catalog -----


@router.get("/locations/{location_id}/requirements", response_model=RequirementsOut)
def location_requirements(location_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    return get_requirements(db, location_id)


@router.put("/locations/{location_id}/requirements", response_model=RequirementsOut)
def put_requirements(
    location_id: str,
    payload: RequirementsUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_principal),
):
    ensure_location_manager(db, location_id, user)
    data = payload.model_dump(exclude_unset=True)
    if payload.custom_fields is not None:
        data["custom_fields"] = [f.model_dump(exclude_none=True) for f in payload.custom_fields]
    requirements = update_requirements(db, location_id=location_id, changes=data, actor_user_id=user.id)
    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="REQUIREMENTS_UPDATE",
        target_type="location",
        target_id=location_id,
        summary="Updated application requirements",
        diff_json={"keys": sorted(data.keys())},
        request=request,
    )
    return requirements


# ----- applications -----


@router.get("/locations/{location_id}/applications", response_model=list[QualificationOut])
def location_applications(location_id: str, status: str | None = None, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    ensure_location_manager(db, location_id, user)
    return list_applications(db, location_id=location_id, status=status)


@router.get("/applications/{record_id}", response_model=QualificationOut)
def application_detail(record_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    return _managed_record(db, record_id, user)


@router.get("/applications/{record_id}/requirements-check", response_model=RequirementCheckOut)
def requirements_check(record_id: str, stage: int = Query(default=2, ge=1, le=4), db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    record = _managed_record(db, record_id, user)
    return check_requirements(record, get_requirements(db, record.location_id), stage)


@router.post("/applications/{record_id}/review", response_model=QualificationOut)
def review(record_id: str, payload: ApplicationReview, request: Request, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    _managed_record(db, record_id, user)
    record = review_application(db, record_id=record_id, approve=payload.approve, reviewer_id=user.id, feedback=payload.feedback)
    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="APPLICATION_REVIEW",
        target_type="qualification",
        target_id=record.id,
        summary="Approved application" if payload.approve else "Rejected application",
        diff_json={"status": record.status, "current_stage": record.current_stage},
        request=request,
    )
    return record


@router.post("/applications/{record_id}/advance", response_model=QualificationOut)
def advance(record_id: str, payload: StageAdvanceRequest, request: Request, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    _managed_record(db, record_id, user)
    record = advance_stage(db, record_id=record_id, target_stage=payload.target_stage, reviewer_id=user.id)
    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="APPLICATION_ADVANCE",
        target_type="qualification",
        target_id=record.id,
        summary=f"Advanced application to stage {payload.target_stage}",
        diff_json={"current_stage": record.current_stage},
        request=request,
    )
    return record


@router.post("/applications/{record_id}/documents", response_model=QualificationOut)
def documents(record_id: str, payload: DocumentVerification, request: Request, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    _managed_record(db, record_id, user)
    record = verify_documents(db, record_id=record_id, statuses=dict(payload.statuses), reviewer_id=user.id)
    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="APPLICATION_DOCUMENTS",
        target_type="qualification",
        target_id=record.id,
        summary="Recorded document verification",
        diff_json=dict(payload.statuses),
        request=request,
    )
    return record


@router.post("/applications/{record_id}/license", response_model=QualificationOut)
def license_entry(record_id: str, payload: LicenseEntry, request: Request, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    _managed_record(db, record_id, user)
    record = record_license(db, record_id=record_id, license_number=payload.license_number, reviewer_id=user.id)
    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="APPLICATION_LICENSE",
        target_type="qualification",
        target_id=record.id,
        summary="Recorded license",
        diff_json={"license_number": payload.license_number},
        request=request,
    )
    return record
