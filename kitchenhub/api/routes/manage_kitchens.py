from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from kitchenhub.core.deps import get_current_principal, get_db, require_admin
from kitchenhub.core.exceptions import NotFoundError
from kitchenhub.core.security import Principal
from kitchenhub.schemas.kitchen import KitchenCreate, KitchenOut, KitchenUpdate, LocationCreate, LocationOut, LocationUpdate
from kitchenhub.schemas.schedule import DateOverrideIn, DateOverrideOut, WeeklyRuleIn, WeeklyRuleOut
from kitchenhub.services.audit_service import write_audit_log
from kitchenhub.services.kitchen_service import (
    create_kitchen,
    create_location,
    ensure_kitchen_manager,
    ensure_location_manager,
    list_kitchens,
    update_kitchen,
    update_location,
)
from kitchenhub.services.schedule_service import (
    delete_date_override,
    list_date_overrides,
    list_weekly_rules,
    set_weekly_rule,
    upsert_date_override,
)

router = APIRouter()


@router.post("/locations", response_model=LocationOut)
def add_location(payload: LocationCreate, request: Request, db: Session = Depends(get_db), user: Principal = Depends(require_admin)):
    location = create_location(db, name=payload.name, address=payload.address, manager_id=payload.manager_id)
    write_audit_log(db, actor_user_id=user.id, action_type="LOCATION_CREATE", target_type="location", target_id=location.id, summary="Created location", request=request)
    return location


@router.patch("/locations/{location_id}", response_model=LocationOut)
def edit_location(location_id: str, payload: LocationUpdate, request: Request, db: Session = Depends(get_db), user: Principal = Depends(require_admin)):
    data = payload.model_dump(exclude_unset=True)
    location = update_location(db, location_id=location_id, changes=data)
    write_audit_log(db, actor_user_id=user.id, action_type="LOCATION_UPDATE", target_type="location", target_id=location.id, summary="Updated location", diff_json={"keys": sorted(data.keys())}, request=request)
    return location


@router.get("/locations/{location_id}/kitchens", response_model=list[KitchenOut])
def location_kitchens(location_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    ensure_location_manager(db, location_id, user)
    return list_kitchens(db, location_id=location_id, active_only=False)


@router.post("/kitchens", response_model=KitchenOut)
def add_kitchen(payload: KitchenCreate, request: Request, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    ensure_location_manager(db, payload.location_id, user)
    kitchen = create_kitchen(
        db,
        location_id=payload.location_id,
        name=payload.name,
        description=payload.description,
        default_capacity=payload.default_capacity,
        minimum_booking_minutes=payload.minimum_booking_minutes,
    )
    write_audit_log(db, actor_user_id=user.id, action_type="KITCHEN_CREATE", target_type="kitchen", target_id=kitchen.id, summary="Created kitchen", request=request)
    return kitchen


@router.patch("/kitchens/{kitchen_id}", response_model=KitchenOut)
def edit_kitchen(kitchen_id: str, payload: KitchenUpdate, request: Request, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    ensure_kitchen_manager(db, kitchen_id, user)
    data = payload.model_dump(exclude_unset=True)
    kitchen = update_kitchen(db, kitchen_id=kitchen_id, changes=data)
    write_audit_log(db, actor_user_id=user.id, action_type="KITCHEN_UPDATE", target_type="kitchen", target_id=kitchen.id, summary="Updated kitchen", diff_json={"keys": sorted(data.keys())}, request=request)
    return kitchen


# ----- weekly hours -----


@router.get("/kitchens/{kitchen_id}/weekly-rules", response_model=list[WeeklyRuleOut])
def weekly_rules(kitchen_id: str, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    ensure_kitchen_manager(db, kitchen_id, user)
    return list_weekly_rules(db, kitchen_id)


@router.put("/kitchens/{kitchen_id}/weekly-rules/{day_of_week}", response_model=WeeklyRuleOut)
def put_weekly_rule(
    kitchen_id: str,
    day_of_week: int,
    payload: WeeklyRuleIn,
    request: Request,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_principal),
):
    ensure_kitchen_manager(db, kitchen_id, user)
    rule = set_weekly_rule(
        db,
        kitchen_id=kitchen_id,
        day_of_week=day_of_week,
        is_open=payload.is_open,
        start_time=payload.start_time,
        end_time=payload.end_time,
        capacity=payload.capacity,
    )
    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="WEEKLY_RULE_SET",
        target_type="kitchen",
        target_id=kitchen_id,
        summary=f"Set hours for day {day_of_week}",
        diff_json=payload.model_dump(mode="json"),
        request=request,
    )
    return rule


# ----- date overrides -----


@router.get("/kitchens/{kitchen_id}/overrides", response_model=list[DateOverrideOut])
def overrides(
    kitchen_id: str,
    from_date: date | None = None,
    to_date: date | None = None,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_principal),
):
    ensure_kitchen_manager(db, kitchen_id, user)
    return list_date_overrides(db, kitchen_id, from_date=from_date, to_date=to_date)


@router.put("/kitchens/{kitchen_id}/overrides/{specific_date}", response_model=DateOverrideOut)
def put_override(
    kitchen_id: str,
    specific_date: date,
    payload: DateOverrideIn,
    request: Request,
    db: Session = Depends(get_db),
    user: Principal = Depends(get_current_principal),
):
    ensure_kitchen_manager(db, kitchen_id, user)
    override = upsert_date_override(
        db,
        kitchen_id=kitchen_id,
        specific_date=specific_date,
        is_open=payload.is_open,
        start_time=payload.start_time,
        end_time=payload.end_time,
        capacity=payload.capacity,
        reason=payload.reason,
        actor_user_id=user.id,
    )
    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="DATE_OVERRIDE_SET",
        target_type="kitchen",
        target_id=kitchen_id,
        summary=f"Set override for {specific_date.isoformat()}",
        diff_json=payload.model_dump(mode="json"),
        request=request,
    )
    return override


@router.delete("/kitchens/{kitchen_id}/overrides/{specific_date}")
def remove_override(kitchen_id: str, specific_date: date, request: Request, db: Session = Depends(get_db), user: Principal = Depends(get_current_principal)):
    ensure_kitchen_manager(db, kitchen_id, user)
    if not delete_date_override(db, kitchen_id=kitchen_id, specific_date=specific_date):
        raise NotFoundError("No override for this date")
    write_audit_log(
        db,
        actor_user_id=user.id,
        action_type="DATE_OVERRIDE_DELETE",
        target_type="kitchen",
        target_id=kitchen_id,
        summary=f"Removed override for {specific_date.isoformat()}",
        request=request,
    )
    return {"ok": True}
