from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field, StringConstraints

from stockatelier.db.models.user import UserRole
from stockatelier.schemas.common import APIModel


class UserOut(APIModel):
    id: UUID
    full_name: str
    email: str
    role: UserRole
    active: bool
    is_team_lead: bool
    is_owner: bool
    created_at: datetime


class UserUpdate(BaseModel):
    full_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=120)] | None = None
    email: Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")] | None = None
    active: bool | None = None


class TeamLeadUpdate(BaseModel):
    is_team_lead: bool = Field(...)
