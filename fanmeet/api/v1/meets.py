from __future__ import annotations

from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends

from fanmeet.api.v1.deps import get_meeting_store, get_now
from fanmeet.schemas.common import MessageResponse
from fanmeet.schemas.meet import (
    CreatorJoinIn,
    FanJoinIn,
    JoinDecisionOut,
    MeetEventLogOut,
    MeetOut,
    MeetTimingOut,
)
from fanmeet.services.meeting_lifecycle import (
    MeetNotFoundError,
    fan_attempt_join,
    list_meet_logs,
    meeting_timing,
    record_creator_joined,
    start_meet,
    stop_recording,
)
from fanmeet.services.meeting_store import MeetingStore, MeetRecord

router = APIRouter(prefix="/meets", tags=["meets"])

# MeetingLifecycleError subclasses raised below are turned into 403/404/409 by the app-level handler.


def _to_meet_out(meet: MeetRecord) -> MeetOut:
    return MeetOut(**asdict(meet))


async def _get_meet(store: MeetingStore, meet_id: str) -> MeetRecord:
    meet = await store.get_meet(meet_id)
    if meet is None:
        raise MeetNotFoundError("Meeting not found")
    return meet


@router.get("/{meet_id}", response_model=MeetOut)
async def get_meet(meet_id: str, store: MeetingStore = Depends(get_meeting_store)) -> MeetOut:
    return _to_meet_out(await _get_meet(store, meet_id))


@router.post("/{meet_id}/start", response_model=MeetOut)
async def start_meet_stream(
    meet_id: str,
    store: MeetingStore = Depends(get_meeting_store),
    now: datetime = Depends(get_now),
) -> MeetOut:
    return _to_meet_out(await start_meet(store, meet_id, now=now))


@router.post("/{meet_id}/creator-joined", response_model=MessageResponse)
async def creator_joined(
    meet_id: str,
    payload: CreatorJoinIn,
    store: MeetingStore = Depends(get_meeting_store),
    now: datetime = Depends(get_now),
) -> MessageResponse:
    await record_creator_joined(store, meet_id, payload.creator_id, now=now)
    return MessageResponse(message="Creator join recorded")


@router.post("/{meet_id}/join", response_model=JoinDecisionOut)
async def fan_join(
    meet_id: str,
    payload: FanJoinIn,
    store: MeetingStore = Depends(get_meeting_store),
    now: datetime = Depends(get_now),
) -> JoinDecisionOut:
    decision = await fan_attempt_join(store, meet_id, payload.fan_id, now=now)
    return JoinDecisionOut(
        success=decision.error is None,
        show_waiting_room=decision.show_waiting_room,
        can_join=decision.can_join,
        meeting_ended=decision.meeting_ended,
        error=decision.error,
    )


@router.post("/{meet_id}/recording/stop", response_model=MessageResponse)
async def stop_meet_recording(
    meet_id: str,
    store: MeetingStore = Depends(get_meeting_store),
    now: datetime = Depends(get_now),
) -> MessageResponse:
    await stop_recording(store, meet_id, now=now)
    return MessageResponse(message="Recording stopped")


@router.get("/{meet_id}/timing", response_model=MeetTimingOut)
async def get_meet_timing(
    meet_id: str,
    store: MeetingStore = Depends(get_meeting_store),
    now: datetime = Depends(get_now),
) -> MeetTimingOut:
    timing = meeting_timing(await _get_meet(store, meet_id), now)
    return MeetTimingOut(
        before_start=timing.before_start,
        during_meeting=timing.during_meeting,
        after_end=timing.after_end,
        seconds_until_start=timing.seconds_until_start,
        seconds_until_end=timing.seconds_until_end,
        remaining_seconds=timing.remaining_seconds,
    )


@router.get("/{meet_id}/logs", response_model=list[MeetEventLogOut])
async def get_meet_logs(meet_id: str, store: MeetingStore = Depends(get_meeting_store)) -> list[MeetEventLogOut]:
    rows = await list_meet_logs(store, meet_id)
    return [
        MeetEventLogOut(meet_id=row.meet_id, event_type=row.event_type, timestamp=row.timestamp, metadata=row.metadata)
        for row in rows
    ]
