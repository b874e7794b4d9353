from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class MeetOut(BaseModel):
    id: str
    event_id: str
    status: str
    scheduled_at: datetime
    duration_minutes: int
    creator_id: str
    fan_id: str
    creator_started_at: datetime | None = None
    creator_joined_at: datetime | None = None
    fan_joined_at: datetime | None = None
    recording_started_at: datetime | None = None
    recording_stopped_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    refund_id: str | None = None
    completed_at: datetime | None = None


class CreatorJoinIn(BaseModel):
    creator_id: str = Field(min_length=1, max_length=36)


class FanJoinIn(BaseModel):
    fan_id: str = Field(min_length=1, max_length=36)


class JoinDecisionOut(BaseModel):
    success: bool
    show_waiting_room: bool
    can_join: bool
    meeting_ended: bool = False
    error: str | None = None


class MeetTimingOut(BaseModel):
    before_start: bool
    during_meeting: bool
    after_end: bool
    seconds_until_start: int
    seconds_until_end: int
    remaining_seconds: int


class MeetEventLogOut(BaseModel):
    meet_id: str
    event_type: str
    timestamp: datetime
    metadata: dict = Field(default_factory=dict)
