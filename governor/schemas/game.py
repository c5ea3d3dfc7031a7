"""Pydantic schemas for pickup games and join requests."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class Coordinates(BaseModel):
    """Map position of a game."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class GameCreate(BaseModel):
    """Fields an organizer supplies when creating a game."""

    date: str = Field(..., description="Game date, ISO format (YYYY-MM-DD).")
    time: str = Field(..., description="Start time (HH:MM).")
    players_needed: int = Field(..., ge=2, le=50, description="Total players including the organizer.")
    level: int = Field(2, ge=1, le=5, description="Skill level, 1 (beginner) to 5 (expert).")
    organizer: str | None = Field(default=None, description="Organizer display name.")
    notes: str | None = Field(default=None, max_length=500)
    location_id: str | None = Field(default=None, description="Known court/field id, if any.")
    coordinates: Coordinates


class GameUpdate(BaseModel):
    """Partial update of a game; omitted fields keep their value."""

    date: str | None = None
    time: str | None = None
    players_needed: int | None = Field(default=None, ge=2, le=50)
    level: int | None = Field(default=None, ge=1, le=5)
    notes: str | None = Field(default=None, max_length=500)
    coordinates: Coordinates | None = None


class Game(GameCreate):
    """A stored game."""

    id: str
    organizer_id: str
    players: List[str] = Field(default_factory=list)
    pending_requests: List[str] = Field(default_factory=list)
    current_players: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class GamePollResponse(BaseModel):
    """Result of a polling refresh; ``skipped`` when throttled."""

    skipped: bool = False
    games: List[Game] = Field(default_factory=list)


class PendingRequest(BaseModel):
    """A join request awaiting the organizer's decision."""

    game_id: str
    user_id: str
    game_name: str
    date: str
    time: str
    coordinates: Coordinates | None = None
