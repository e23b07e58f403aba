from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from kitchenhub.core.deps import get_db, require_admin
from kitchenhub.core.security import Principal
from kitchenhub.schemas.audit import AuditLogOut
from kitchenhub.services.audit_service import MAX_AUDIT_PAGE, list_audit_logs

router = APIRouter()


@router.get("/audit-logs", response_model=list[AuditLogOut])
def get_audit_logs(
    from_: datetime | None = Query(default=None, alias="from"),
    to: datetime | None = None,
    actor_user_id: str | None = None,
    action_type: str | None = None,
    target_type: str | None = None,
    target_id: str | None = None,
    request_id: str | None = None,
    limit: int = Query(default=100, ge=1, le=MAX_AUDIT_PAGE),
    db: Session = Depends(get_db),
    user: Principal = Depends(require_admin),
):
    return list_audit_logs(
        db,
        from_=from_,
        to=to,
        actor_user_id=actor_user_id,
        action_type=action_type,
        target_type=target_type,
        target_id=target_id,
        request_id=request_id,
        limit=limit,
    )
