"""Pydantic schemas for user profiles and sessions."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class UserProfile(BaseModel):
    """Stored profile of a signed-in user."""

    uid: str
    email: str | None = None
    name: str = ""
    photo_url: str = ""
    phone: str | None = None
    level: int = Field(2, ge=1, le=5)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProfileUpdate(BaseModel):
    """Editable profile fields."""

    name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, pattern=r"^\+?[0-9\- ]{7,20}$")
    level: int | None = Field(default=None, ge=1, le=5)
    photo_url: str | None = None


class SignInRequest(BaseModel):
    """Identity asserted by the authentication provider after sign-in."""

    uid: str = Field(..., min_length=1)
    email: str | None = None
    name: str | None = None
    photo_url: str | None = None
