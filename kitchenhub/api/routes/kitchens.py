from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from kitchenhub.core.deps import get_current_principal, get_db
from kitchenhub.schemas.kitchen import KitchenOut, LocationOut
from kitchenhub.schemas.schedule import ResolvedScheduleOut, SlotListResponse, SlotOut
from kitchenhub.services.capacity_service import list_available_slots
from kitchenhub.services.kitchen_service import get_kitchen, list_kitchens, list_locations
from kitchenhub.services.schedule_service import resolve_schedule

router = APIRouter()


@router.get("/locations", response_model=list[LocationOut])
def get_locations(db: Session = Depends(get_db), user=Depends(get_current_principal)):
    return list_locations(db)


@router.get("/kitchens", response_model=list[KitchenOut])
def get_kitchens(location_id: str | None = None, db: Session = Depends(get_db), user=Depends(get_current_principal)):
    return list_kitchens(db, location_id=location_id)


@router.get("/kitchens/{kitchen_id}", response_model=KitchenOut)
def get_kitchen_detail(kitchen_id: str, db: Session = Depends(get_db), user=Depends(get_current_principal)):
    return get_kitchen(db, kitchen_id, active_only=True)


@router.get("/kitchens/{kitchen_id}/schedule", response_model=ResolvedScheduleOut)
def get_schedule(kitchen_id: str, on: date = Query(alias="date"), db: Session = Depends(get_db), user=Depends(get_current_principal)):
    return resolve_schedule(db, kitchen_id, on)


@router.get("/kitchens/{kitchen_id}/slots", response_model=SlotListResponse)
def get_slots(
    kitchen_id: str,
    on: date = Query(alias="date"),
    include_full: bool = False,
    db: Session = Depends(get_db),
    user=Depends(get_current_principal),
):
    get_kitchen(db, kitchen_id, active_only=True)
    schedule = resolve_schedule(db, kitchen_id, on)
    board = list_available_slots(db, kitchen_id, on, include_full=include_full)
    return SlotListResponse(
        kitchen_id=kitchen_id,
        date=on,
        is_open=schedule.is_open,
        slots=[SlotOut.model_validate(s) for s in board],
    )
