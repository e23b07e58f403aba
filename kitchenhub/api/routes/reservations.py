from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from kitchenhub.core.deps import get_current_principal, get_db
from kitchenhub.core.security import Principal
from kitchenhub.schemas.reservation import ReservationCancelRequest, ReservationCreate, ReservationOut
from kitchenhub.services.audit_service import write_audit_log
from kitchenhub.services.reservation_service import (
    cancel_reservation,
    create_reservation,
    ensure_can_view,
    get_reservation,
    list_requester_reservations,
)

router = APIRouter()


@router.post("", response_model=ReservationOut, status_code=201)
def book(payload: ReservationCreate, request: Request, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    r = create_reservation(
        db,
        kitchen_id=payload.kitchen_id,
        requester_id=user.id,
        booking_date=payload.booking_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        special_notes=payload.special_notes,
    )
    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="RESERVATION_CREATE",
        target_type="reservation",
        target_id=r.id,
        summary="Booked kitchen",
        diff_json={"kitchen_id": r.kitchen_id, "booking_date": r.booking_date.isoformat()},
        request=request,
    )
    return r


@router.get("/mine", response_model=list[ReservationOut])
def my_reservations(include_cancelled: bool = False, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    return list_requester_reservations(db, requester_id=user.id, include_cancelled=include_cancelled)


@router.get("/{reservation_id}", response_model=ReservationOut)
def reservation_detail(reservation_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    r = get_reservation(db, reservation_id)
    ensure_can_view(db, r, user)
    return r


@router.post("/{reservation_id}/cancel", response_model=ReservationOut)
def cancel(
    reservation_id: str,
    payload: ReservationCancelRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_principal),
):
    r = cancel_reservation(db, reservation_id=reservation_id, principal=user, reason=payload.reason)
    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="RESERVATION_CANCEL",
        target_type="reservation",
        target_id=r.id,
        summary="Cancelled reservation",
        request=request,
    )
    return r
