"""User profile schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class UserRead(BaseModel):
    """User returned from API."""

    id: uuid.UUID
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    display_name: str
    profile_image: str | None = None
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserUpdate(BaseModel):
    """PATCH /api/users/me: update own profile."""

    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)


class UsernameSet(BaseModel):
    """POST /api/users/set-username"""

    username: str


class UsernameAvailability(BaseModel):
    username: str
    available: bool
    message: str
