from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

import structlog
from fastapi import Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from kitchenhub.models.audit_log import AuditLog

logger = structlog.get_logger(__name__)

# Applicant and external-contact personal data never lands in the audit trail.
REDACTED_KEYS = frozenset(
    {
        "email",
        "phone",
        "full_name",
        "external_contact_name",
        "external_contact_email",
        "external_contact_phone",
        "license_number",
        "stage_data",
    }
)

MAX_AUDIT_PAGE = 500


def _redact(obj: Any) -> Any:
    if isinstance(obj, Mapping):
        return {k: "<redacted>" if k in REDACTED_KEYS else _redact(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_redact(v) for v in obj]
    return obj


def _request_id(request: Request | None) -> str:
    if request is not None:
        rid = getattr(request.state, "request_id", None)
        if rid:
            return str(rid)
    return str(structlog.contextvars.get_contextvars().get("request_id", ""))


def write_audit_log(
    db: Session,
    *,
    actor_user_id: str | None,
    action_type: str,
    target_type: str = "",
    target_id: str = "",
    summary: str = "",
    diff_json: Mapping[str, Any] | None = None,
    request: Request | None = None,
) -> AuditLog:
    entry = AuditLog(
        actor_user_id=actor_user_id,
        action_type=action_type,
        target_type=target_type,
        target_id=str(target_id),
        summary=summary[:255],
        diff_json=_redact(diff_json) if diff_json is not None else None,
        request_id=_request_id(request),
        ip_address=request.client.host if request is not None and request.client else "",
    )
    db.add(entry)
    db.commit()
    logger.debug("audit_written", action_type=action_type, target_type=target_type, target_id=entry.target_id)
    return entry


def list_audit_logs(
    db: Session,
    *,
    from_: datetime | None = None,
    to: datetime | None = None,
    actor_user_id: str | None = None,
    action_type: str | None = None,
    target_type: str | None = None,
    target_id: str | None = None,
    request_id: str | None = None,
    limit: int = MAX_AUDIT_PAGE,
) -> list[AuditLog]:
    q = select(AuditLog).order_by(AuditLog.created_at.desc())
    if from_:
        q = q.where(AuditLog.created_at >= from_)
    if to:
        q = q.where(AuditLog.created_at <= to)
    if actor_user_id:
        q = q.where(AuditLog.actor_user_id == actor_user_id)
    if action_type:
        q = q.where(AuditLog.action_type == action_type)
    if target_type:
        q = q.where(AuditLog.target_type == target_type)
    if target_id:
        q = q.where(AuditLog.target_id == target_id)
    if request_id:
        q = q.where(AuditLog.request_id == request_id)
    return list(db.execute(q.limit(min(limit, MAX_AUDIT_PAGE))).scalars().all())
