"""Pydantic schemas for the Drivers24 backend contract.

The backend speaks camelCase JSON; every model accepts both the camelCase
alias and the snake_case attribute name, and ignores keys it does not know.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    USER = "USER"
    DRIVER = "DRIVER"
    ADMIN = "ADMIN"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "ignore"

    def to_api(self) -> dict[str, Any]:
        """Dump with backend key names, dropping unset optional values."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── Users ─────────────────────────────────────────────────

class UserData(CamelModel):
    """Denormalised user snapshot cached in the session."""
    id: str
    clerk_id: str | None = None
    email: str
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    profile_image_url: str | None = None
    role: Role | None = None
    city: str | None = None

    @property
    def display_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        if parts:
            return " ".join(parts)
        return self.username or self.email


class UserSummary(CamelModel):
    id: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None
    city: str | None = None


class AuthPayload(CamelModel):
    """`data` of select-role / profile / complete-registration responses."""
    user: UserData
    token: str | None = None
    driver: DriverProfile | None = None


# ── Drivers ───────────────────────────────────────────────

class DriverProfileBase(CamelModel):
    name: str
    phone_number: str
    dl_number: str
    rc_number: str | None = None
    dl_image: str | None = None
    rc_image: str | None = None
    permanent_address: str
    operating_address: str
    city: str
    state: str | None = None
    pincode: str | None = None
    vehicle_type: str | None = None
    vehicle_model: str | None = None
    vehicle_number: str | None = None
    experience: int | None = Field(None, ge=0)
    salary_expectation: int | None = Field(None, ge=0)


class DriverProfileCreate(DriverProfileBase):
    """Body of POST /api/drivers/profile."""


class DriverProfile(DriverProfileBase):
    """Driver profile as returned by the backend."""
    id: str
    name: str = ""
    phone_number: str = ""
    dl_number: str = ""
    permanent_address: str = ""
    operating_address: str = ""
    city: str = ""
    availability: bool = False
    is_verified: bool = False
    verified_at: datetime | None = None
    created_at: datetime | None = None
    user: UserSummary | None = None


class GuestDriverRegistration(CamelModel):
    """Pending guest registration returned by POST /api/drivers/register-guest."""
    id: str | None = None
    email: str
    phone_number: str
    first_name: str | None = None
    last_name: str | None = None
    expires_at: datetime | None = None


# ── Bookings ──────────────────────────────────────────────

class BookingCreate(CamelModel):
    """Body of POST /api/bookings."""
    driver_id: str
    pickup_location: str | None = None
    drop_location: str | None = None
    scheduled_date: str | None = None
    notes: str | None = None


class Booking(CamelModel):
    id: str
    status: BookingStatus = BookingStatus.PENDING
    pickup_location: str | None = None
    drop_location: str | None = None
    scheduled_date: str | None = None
    notes: str | None = None
    driver_response: str | None = None
    responded_at: datetime | None = None
    created_at: datetime | None = None
    user: UserSummary | None = None
    driver: DriverProfile | None = None


# ── Envelope ──────────────────────────────────────────────

class Pagination(CamelModel):
    page: int = 1
    limit: int = 10
    total_count: int = 0
    total_pages: int = 0
    has_next_page: bool = False
    has_prev_page: bool = False


class ApiEnvelope(CamelModel):
    """Common response envelope: branch on `success`, not on HTTP status."""
    success: bool = False
    data: Any = None
    error: str | None = None
    message: str | None = None
    count: int | None = None
    pagination: Pagination | None = None


AuthPayload.model_rebuild()
