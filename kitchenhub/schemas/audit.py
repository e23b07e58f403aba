from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class AuditLogOut(BaseModel):
    id: str
    created_at: datetime
    actor_user_id: str | None
    action_type: str
    target_type: str
    target_id: str
    summary: str
    diff_json: dict[str, Any] | None
    request_id: str

    class Config:
        from_attributes = True
