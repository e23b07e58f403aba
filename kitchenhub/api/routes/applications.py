from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from kitchenhub.core.deps import get_current_principal, get_db
from kitchenhub.core.exceptions import PermissionDeniedError
from kitchenhub.core.security import Principal
from kitchenhub.schemas.qualification import ApplicationStatusOut, QualificationOut, QualificationSubmit
from kitchenhub.services.audit_service import write_audit_log
from kitchenhub.services.qualification_service import (
    cancel_application,
    get_application_status,
    get_record,
    list_requester_applications,
    submit_qualification,
)

router = APIRouter()


@router.post("", response_model=QualificationOut)
def submit(payload: QualificationSubmit, request: Request, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    record = submit_qualification(db, requester_id=user.id, location_id=payload.location_id, data=payload.data)
    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="APPLICATION_SUBMIT",
        target_type="qualification",
        target_id=record.id,
        summary="Submitted application",
        diff_json={"fields": sorted(payload.data.keys())},
        request=request,
    )
    return record


@router.get("/mine", response_model=list[QualificationOut])
def my_applications(db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    return list_requester_applications(db, requester_id=user.id)


@router.get("/status", response_model=ApplicationStatusOut)
def booking_status(location_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    return get_application_status(db, requester_id=user.id, location_id=location_id)


@router.get("/{record_id}", response_model=QualificationOut)
def application_detail(record_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    record = get_record(db, record_id)
    if record.requester_id != user.id:
        raise PermissionDeniedError("Not your application")
    return record


@router.post("/{record_id}/cancel", response_model=QualificationOut)
def cancel(record_id: str, request: Request, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    record = cancel_application(db, record_id=record_id, requester_id=user.id)
    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="APPLICATION_CANCEL",
        target_type="qualification",
        target_id=record.id,
        summary="Cancelled application",
        request=request,
    )
    return record
