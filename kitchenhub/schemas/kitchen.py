from __future__ import annotations

from pydantic import BaseModel, Field


class LocationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    address: str = Field(default="", max_length=255)
    manager_id: str | None = Field(default=None, max_length=64)


class LocationUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    address: str | None = Field(default=None, max_length=255)
    manager_id: str | None = Field(default=None, max_length=64)
    active: bool | None = None


class LocationOut(BaseModel):
    id: str
    name: str
    address: str
    manager_id: str | None
    active: bool

    class Config:
        from_attributes = True


class KitchenCreate(BaseModel):
    location_id: str
    name: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=2000)
    default_capacity: int = Field(default=1, ge=1)
    minimum_booking_minutes: int = Field(default=60, ge=0)


class KitchenUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    active: bool | None = None
    default_capacity: int | None = Field(default=None, ge=1)
    minimum_booking_minutes: int | None = Field(default=None, ge=0)


class KitchenOut(BaseModel):
    id: str
    location_id: str
    name: str
    description: str
    active: bool
    default_capacity: int
    minimum_booking_minutes: int

    class Config:
        from_attributes = True
