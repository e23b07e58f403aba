from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field


class WeeklyRuleIn(BaseModel):
    is_open: bool = True
    start_time: dt.time
    end_time: dt.time
    capacity: int = Field(default=1, ge=1)


class WeeklyRuleOut(BaseModel):
    id: str
    kitchen_id: str
    day_of_week: int  # 0=Sunday
    is_open: bool
    start_time: dt.time
    end_time: dt.time
    capacity: int

    class Config:
        from_attributes = True


class DateOverrideIn(BaseModel):
    is_open: bool = False
    start_time: dt.time | None = None
    end_time: dt.time | None = None
    capacity: int | None = Field(default=None, ge=1)
    reason: str = Field(default="", max_length=255)


class DateOverrideOut(BaseModel):
    id: str
    kitchen_id: str
    specific_date: dt.date
    is_open: bool
    start_time: dt.time | None
    end_time: dt.time | None
    capacity: int | None
    reason: str

    class Config:
        from_attributes = True


class ResolvedScheduleOut(BaseModel):
    kitchen_id: str
    date: dt.date
    is_open: bool
    start_time: dt.time | None
    end_time: dt.time | None
    capacity: int
    source: str  # override/weekly/none/inactive
    reason: str

    class Config:
        from_attributes = True


class SlotOut(BaseModel):
    time: dt.time
    capacity: int
    booked_count: int
    available: int
    is_full: bool

    class Config:
        from_attributes = True


class SlotListResponse(BaseModel):
    kitchen_id: str
    date: dt.date
    is_open: bool
    slots: list[SlotOut]
