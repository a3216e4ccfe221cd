"""Heartbeat input and snapshot output shapes."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class PresenceApp(str, Enum):
    PORTAL = "portal"
    CANDIDATE = "candidate"
    CORPORATE = "corporate"


class PresenceStatus(str, Enum):
    ACTIVE = "active"
    IDLE = "idle"


class Heartbeat(BaseModel):
    session_id: str = Field(min_length=8, max_length=64)
    user_id: str | None = Field(default=None, max_length=64)
    app: PresenceApp
    page: str = Field(default="/", max_length=512)
    status: PresenceStatus = PresenceStatus.ACTIVE


def resolve_user_type(user_id: str | None, user_type: str | None = None) -> str:
    if user_type:
        return user_type
    return "recruiter" if user_id else "anonymous"


class TimelinePoint(BaseModel):
    timestamp: datetime
    count: int


class PresenceSnapshot(BaseModel):
    total_online: int
    authenticated: int
    anonymous: int
    by_app: dict[str, int]
    by_role: dict[str, int]
    timeline: list[TimelinePoint]
    timeline_by_app: dict[str, list[TimelinePoint]]
    timeline_by_role: dict[str, list[TimelinePoint]]
    generated_at: datetime
