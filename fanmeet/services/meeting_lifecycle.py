from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from fanmeet.models.meet import (
    STATUS_CANCELLED,
    STATUS_CANCELLED_NO_SHOW,
    STATUS_COMPLETED,
    STATUS_LIVE,
    STATUS_SCHEDULED,
    TERMINAL_STATUSES,
)
from fanmeet.services.meeting_store import EventLogRecord, MeetingStore, MeetRecord, as_iso

logger = logging.getLogger(__name__)


class MeetingLifecycleError(RuntimeError):
    pass


class MeetNotFoundError(MeetingLifecycleError):
    pass


class MeetStateError(MeetingLifecycleError):
    pass


class MeetParticipantError(MeetingLifecycleError):
    pass


@dataclass(frozen=True)
class JoinDecision:
    show_waiting_room: bool
    can_join: bool
    meeting_ended: bool = False
    error: str | None = None


@dataclass(frozen=True)
class MeetingTiming:
    before_start: bool
    during_meeting: bool
    after_end: bool
    seconds_until_start: int
    seconds_until_end: int

    @property
    def remaining_seconds(self) -> int:
        return max(self.seconds_until_end, 0)


def meeting_timing(meet: MeetRecord, now: datetime) -> MeetingTiming:
    start = meet.scheduled_at
    end = meet.scheduled_end
    return MeetingTiming(
        before_start=now < start,
        during_meeting=start <= now < end,
        after_end=now >= end,
        seconds_until_start=math.floor((start - now).total_seconds()),
        seconds_until_end=math.floor((end - now).total_seconds()),
    )


async def _require_meet(store: MeetingStore, meet_id: str) -> MeetRecord:
    meet = await store.get_meet(meet_id)
    if meet is None:
        raise MeetNotFoundError("Meeting not found")
    return meet


async def start_meet(store: MeetingStore, meet_id: str, *, now: datetime) -> MeetRecord:
    """Creator goes live.

    A creator reconnecting to a meet that is already live is a no-op. Starting
    is refused once the scheduled end has passed or the meet reached a
    terminal state.
    """
    meet = await _require_meet(store, meet_id)
    if meet.status in TERMINAL_STATUSES:
        raise MeetStateError(f"Meeting is not in a startable state (current: {meet.status})")
    if meet.status == STATUS_LIVE:
        return meet
    if now >= meet.scheduled_end:
        raise MeetStateError("Cannot start meeting after scheduled end time")

    started_early = now < meet.scheduled_at
    seconds_from_scheduled = int((meet.scheduled_at - now).total_seconds())

    moved = await store.transition_meet(
        meet.id,
        from_status=STATUS_SCHEDULED,
        to_status=STATUS_LIVE,
        creator_started_at=now,
    )
    if not moved:
        current = await _require_meet(store, meet_id)
        if current.status == STATUS_LIVE:
            return current
        raise MeetStateError(f"Meeting is not in a startable state (current: {current.status})")

    await store.append_event_log(
        meet.id,
        "CREATOR_STREAM_STARTED",
        {
            "started_at": as_iso(now),
            "scheduled_start": as_iso(meet.scheduled_at),
            "started_early": started_early,
            "seconds_from_scheduled": seconds_from_scheduled,
        },
        timestamp=now,
    )
    logger.info("Meet id=%s is live (started_early=%s)", meet.id, started_early)
    return await _require_meet(store, meet_id)


async def record_creator_joined(store: MeetingStore, meet_id: str, creator_id: str, *, now: datetime) -> None:
    meet = await _require_meet(store, meet_id)
    if meet.creator_id != creator_id:
        raise MeetParticipantError("User is not the creator of this meeting")

    await store.update_meet(meet.id, creator_joined_at=now)
    await store.append_event_log(
        meet.id,
        "CREATOR_JOINED",
        {"creator_id": creator_id, "joined_at": as_iso(now)},
        timestamp=now,
    )
    await maybe_start_recording(store, meet.id, now=now)


async def fan_attempt_join(store: MeetingStore, meet_id: str, fan_id: str, *, now: datetime) -> JoinDecision:
    meet = await _require_meet(store, meet_id)
    if meet.fan_id != fan_id:
        raise MeetParticipantError("User is not the fan for this meeting")

    if meet.status in (STATUS_CANCELLED_NO_SHOW, STATUS_CANCELLED):
        return JoinDecision(False, False, meeting_ended=True, error="Meeting has been cancelled")
    if meet.status == STATUS_COMPLETED:
        return JoinDecision(False, False, meeting_ended=True, error="Meeting has already ended")
    if now >= meet.scheduled_end:
        return JoinDecision(False, False, meeting_ended=True, error="Meeting time has ended")

    if meet.status == STATUS_SCHEDULED:
        await store.append_event_log(
            meet.id,
            "FAN_WAITING_ROOM",
            {"fan_id": fan_id, "attempted_at": as_iso(now)},
            timestamp=now,
        )
        return JoinDecision(show_waiting_room=True, can_join=False)

    if meet.status == STATUS_LIVE:
        if meet.fan_joined_at is None:
            await store.update_meet(meet.id, fan_joined_at=now)
            late_by = max(int((now - meet.scheduled_at).total_seconds()), 0)
            await store.append_event_log(
                meet.id,
                "FAN_JOINED",
                {
                    "fan_id": fan_id,
                    "joined_at": as_iso(now),
                    "scheduled_start": as_iso(meet.scheduled_at),
                    "joined_late_by_seconds": late_by,
                },
                timestamp=now,
            )
            await maybe_start_recording(store, meet.id, now=now)
        return JoinDecision(show_waiting_room=False, can_join=True)

    return JoinDecision(False, False, error="Unknown meeting state")


async def maybe_start_recording(store: MeetingStore, meet_id: str, *, now: datetime) -> bool:
    """Start recording once both sides are present on a live meet."""
    meet = await store.get_meet(meet_id)
    if meet is None or meet.status != STATUS_LIVE or meet.recording_started_at is not None:
        return False
    if meet.creator_started_at is None or meet.fan_joined_at is None:
        return False

    await store.update_meet(meet.id, recording_started_at=now)
    await store.append_event_log(meet.id, "RECORDING_STARTED", {"started_at": as_iso(now)}, timestamp=now)
    logger.info("Recording started for meet id=%s", meet.id)
    return True


async def stop_recording(store: MeetingStore, meet_id: str, *, now: datetime) -> None:
    meet = await _require_meet(store, meet_id)
    if meet.recording_started_at is None:
        raise MeetStateError("Recording was never started")
    if meet.recording_stopped_at is not None:
        return
    await store.update_meet(meet.id, recording_stopped_at=now)
    await store.append_event_log(meet.id, "RECORDING_STOPPED", {"stopped_at": as_iso(now)}, timestamp=now)


async def list_meet_logs(store: MeetingStore, meet_id: str) -> list[EventLogRecord]:
    await _require_meet(store, meet_id)
    return await store.list_event_logs(meet_id)
