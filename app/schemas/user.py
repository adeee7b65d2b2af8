import re
import uuid
from datetime import datetime
from typing import Literal

from pydantic import EmailStr, ConfigDict, field_validator
from sqlmodel import SQLModel, Field

# App-level roles. "guest" = no token, so we don't store it here.
Role = Literal["customer", "vendor", "service_provider", "admin"]
AccountStatus = Literal["active", "disabled", "suspended"]
HHMM = re.compile(r"([01]\d|2[0-3]):[0-5]\d")
Weekday = Literal[
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
]


class Principal(SQLModel):
    """
    The calling identity as seen by services: id + role only.

    Services check role/ownership against it and never authenticate it.
    """

    id: uuid.UUID
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class UserRead(SQLModel):
    """Response schema returned to clients."""

    id: uuid.UUID
    email: EmailStr
    name: str
    role: Role
    status: AccountStatus
    created_at: datetime


class UserUpdate(SQLModel):
    """
    Partial profile update for authenticated users.
    Only editable field is `name` here.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=50)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class UserRoleUpdate(SQLModel):
    """
    Admin-only role/status update schema.
    """

    model_config = ConfigDict(extra="forbid")

    role: Role | None = None
    status: AccountStatus | None = None


class ProviderProfileUpsert(SQLModel):
    """
    Payload for a service provider to create or replace their profile.
    """

    model_config = ConfigDict(extra="forbid")

    business_name: str | None = None
    hourly_rate: float = Field(ge=0)
    minimum_charge: float | None = Field(default=None, ge=0)
    travel_fee: float | None = Field(default=None, ge=0)
    working_days: list[Weekday] = Field(default_factory=list)
    working_hours_start: str = Field(default="08:00", description="HH:MM, 24-hour clock")
    working_hours_end: str = Field(default="18:00", description="HH:MM, 24-hour clock")

    @field_validator("working_hours_start", "working_hours_end")
    @classmethod
    def validate_hhmm(cls, v: str) -> str:
        if not HHMM.fullmatch(v):
            raise ValueError("time must be HH:MM between 00:00 and 23:59")
        return v


class ProviderProfileRead(SQLModel):
    user_id: uuid.UUID
    business_name: str | None
    hourly_rate: float
    minimum_charge: float | None
    travel_fee: float | None
    working_days: list[str]
    working_hours_start: str
    working_hours_end: str
