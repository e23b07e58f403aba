from __future__ import annotations

from datetime import date, datetime, time

from pydantic import BaseModel, EmailStr, Field


class ReservationCreate(BaseModel):
    kitchen_id: str
    booking_date: date
    start_time: time
    end_time: time
    special_notes: str = Field(default="", max_length=2000)


class ExternalReservationCreate(ReservationCreate):
    contact_name: str = Field(min_length=1, max_length=255)
    contact_email: EmailStr | None = None
    contact_phone: str = Field(default="", max_length=32)
    contact_company: str = Field(default="", max_length=255)


class ReservationCancelRequest(BaseModel):
    reason: str = Field(default="", max_length=255)


class ReservationOut(BaseModel):
    id: str
    kitchen_id: str
    requester_id: str | None
    booking_type: str
    booking_date: date
    start_time: time
    end_time: time
    status: str
    special_notes: str
    created_at: datetime
    confirmed_at: datetime | None
    cancelled_at: datetime | None
    cancel_reason: str

    class Config:
        from_attributes = True


class AdminReservationOut(ReservationOut):
    created_by_user_id: str | None
    external_contact_name: str
    external_contact_email: str
    external_contact_phone: str
    external_contact_company: str
