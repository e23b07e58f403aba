from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from kitchenhub.core.deps import get_current_principal, get_db
from kitchenhub.core.security import Principal
from kitchenhub.schemas.reservation import AdminReservationOut, ExternalReservationCreate, ReservationCancelRequest
from kitchenhub.services.audit_service import write_audit_log
from kitchenhub.services.kitchen_service import ensure_kitchen_manager
from kitchenhub.services.reservation_service import (
    cancel_reservation,
    confirm_reservation,
    create_external_reservation,
    list_kitchen_reservations,
)

router = APIRouter()


@router.get("/kitchens/{kitchen_id}/reservations", response_model=list[AdminReservationOut])
def kitchen_reservations(
    kitchen_id: str,
    from_date: date | None = None,
    to_date: date | None = None,
    status: str | None = None,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_principal),
):
    ensure_kitchen_manager(db, kitchen_id, user)
    return list_kitchen_reservations(db, kitchen_id=kitchen_id, from_date=from_date, to_date=to_date, status=status)


@router.post("/reservations/external", response_model=AdminReservationOut, status_code=201)
def book_external(payload: ExternalReservationCreate, request: Request, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    r = create_external_reservation(
        db,
        kitchen_id=payload.kitchen_id,
        principal=user,
        booking_date=payload.booking_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        contact_name=payload.contact_name,
        contact_email=payload.contact_email or "",
        contact_phone=payload.contact_phone,
        contact_company=payload.contact_company,
        special_notes=payload.special_notes,
    )
    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="RESERVATION_CREATE_EXTERNAL",
        target_type="reservation",
        target_id=r.id,
        summary="Booked kitchen for external contact",
        diff_json={"external_contact_name": r.external_contact_name, "kitchen_id": r.kitchen_id},
        request=request,
    )
    return r


@router.post("/reservations/{reservation_id}/confirm", response_model=AdminReservationOut)
def confirm(reservation_id: str, request: Request, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    r = confirm_reservation(db, reservation_id=reservation_id, principal=user)
    write_audit_log(db, actor_user_id=user.id, action_type="RESERVATION_CONFIRM", target_type="reservation", target_id=r.id, summary="Confirmed reservation", request=request)
    return r


@router.post("/reservations/{reservation_id}/cancel", response_model=AdminReservationOut)
def cancel(
    reservation_id: str,
    payload: ReservationCancelRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_principal),
):
    r = cancel_reservation(db, reservation_id=reservation_id, principal=user, reason=payload.reason)
    write_audit_log(db, actor_user_id=user.id, action_type="RESERVATION_CANCEL", target_type="reservation", target_id=r.id, summary="Cancelled reservation", request=request)
    return r
