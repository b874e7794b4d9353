from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import T0
from fanmeet.services.meeting_lifecycle import (
    MeetNotFoundError,
    MeetParticipantError,
    MeetStateError,
    fan_attempt_join,
    list_meet_logs,
    meeting_timing,
    record_creator_joined,
    start_meet,
    stop_recording,
)


@pytest.mark.asyncio
async def test_start_before_schedule_goes_live_early(store) -> None:
    meet = store.add_auctioned_meet()
    now = T0 - timedelta(minutes=2)

    started = await start_meet(store, meet.id, now=now)

    assert started.status == "live"
    assert started.creator_started_at == now
    log = store.log_entry(meet.id, "CREATOR_STREAM_STARTED")
    assert log.metadata["started_early"] is True
    assert log.metadata["seconds_from_scheduled"] == 120


@pytest.mark.asyncio
async def test_start_after_schedule_is_late(store) -> None:
    meet = store.add_auctioned_meet()

    started = await start_meet(store, meet.id, now=T0 + timedelta(minutes=3))

    assert started.status == "live"
    log = store.log_entry(meet.id, "CREATOR_STREAM_STARTED")
    assert log.metadata["started_early"] is False
    assert log.metadata["seconds_from_scheduled"] == -180


@pytest.mark.asyncio
async def test_start_after_scheduled_end_is_refused(store) -> None:
    meet = store.add_auctioned_meet()

    with pytest.raises(MeetStateError):
        await start_meet(store, meet.id, now=T0 + timedelta(minutes=10))

    assert store.meets[meet.id].status == "scheduled"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["completed", "cancelled_no_show_creator", "cancelled"])
async def test_start_terminal_meet_is_refused(store, status) -> None:
    meet = store.add_auctioned_meet(status=status)

    with pytest.raises(MeetStateError, match=status):
        await start_meet(store, meet.id, now=T0)


@pytest.mark.asyncio
async def test_reconnecting_creator_keeps_original_start(store) -> None:
    started_at = T0 - timedelta(minutes=1)
    meet = store.add_auctioned_meet(status="live", creator_started_at=started_at)

    again = await start_meet(store, meet.id, now=T0 + timedelta(minutes=2))

    assert again.creator_started_at == started_at
    assert store.log_types(meet.id) == []


@pytest.mark.asyncio
async def test_start_unknown_meet(store) -> None:
    with pytest.raises(MeetNotFoundError):
        await start_meet(store, "missing", now=T0)


@pytest.mark.asyncio
async def test_creator_joined_requires_the_creator(store) -> None:
    meet = store.add_auctioned_meet()

    with pytest.raises(MeetParticipantError):
        await record_creator_joined(store, meet.id, "someone-else", now=T0)


@pytest.mark.asyncio
async def test_creator_joined_is_recorded(store) -> None:
    meet = store.add_auctioned_meet(status="live", creator_started_at=T0)

    await record_creator_joined(store, meet.id, "creator-1", now=T0 + timedelta(seconds=5))

    assert store.meets[meet.id].creator_joined_at == T0 + timedelta(seconds=5)
    assert store.log_types(meet.id) == ["CREATOR_JOINED"]


@pytest.mark.asyncio
async def test_fan_waits_while_meet_is_scheduled(store) -> None:
    meet = store.add_auctioned_meet()

    decision = await fan_attempt_join(store, meet.id, "fan-1", now=T0 - timedelta(minutes=1))

    assert decision.show_waiting_room is True
    assert decision.can_join is False
    assert store.meets[meet.id].fan_joined_at is None
    assert store.log_types(meet.id) == ["FAN_WAITING_ROOM"]


@pytest.mark.asyncio
async def test_fan_join_on_live_meet_starts_recording(store) -> None:
    meet = store.add_auctioned_meet(status="live", creator_started_at=T0 - timedelta(minutes=1))
    now = T0 + timedelta(seconds=45)

    decision = await fan_attempt_join(store, meet.id, "fan-1", now=now)

    assert decision.can_join is True
    assert decision.show_waiting_room is False
    current = store.meets[meet.id]
    assert current.fan_joined_at == now
    assert current.recording_started_at == now
    assert store.log_types(meet.id) == ["FAN_JOINED", "RECORDING_STARTED"]
    assert store.log_entry(meet.id, "FAN_JOINED").metadata["joined_late_by_seconds"] == 45


@pytest.mark.asyncio
async def test_fan_rejoin_keeps_first_join_time(store) -> None:
    meet = store.add_auctioned_meet(status="live", creator_started_at=T0)
    first = T0 + timedelta(seconds=10)

    await fan_attempt_join(store, meet.id, "fan-1", now=first)
    decision = await fan_attempt_join(store, meet.id, "fan-1", now=first + timedelta(minutes=1))

    assert decision.can_join is True
    assert store.meets[meet.id].fan_joined_at == first
    assert store.log_types(meet.id).count("FAN_JOINED") == 1


@pytest.mark.asyncio
async def test_fan_cannot_join_cancelled_meet(store) -> None:
    meet = store.add_auctioned_meet(status="cancelled_no_show_creator")

    decision = await fan_attempt_join(store, meet.id, "fan-1", now=T0 + timedelta(minutes=1))

    assert decision.can_join is False
    assert decision.meeting_ended is True
    assert decision.error == "Meeting has been cancelled"


@pytest.mark.asyncio
async def test_fan_cannot_join_after_end(store) -> None:
    meet = store.add_auctioned_meet(status="live", creator_started_at=T0)

    decision = await fan_attempt_join(store, meet.id, "fan-1", now=T0 + timedelta(minutes=10))

    assert decision.meeting_ended is True
    assert decision.error == "Meeting time has ended"
    assert store.meets[meet.id].fan_joined_at is None


@pytest.mark.asyncio
async def test_only_the_winning_fan_may_join(store) -> None:
    meet = store.add_auctioned_meet(status="live", creator_started_at=T0)

    with pytest.raises(MeetParticipantError):
        await fan_attempt_join(store, meet.id, "fan-2", now=T0)


@pytest.mark.asyncio
async def test_stop_recording_requires_a_started_recording(store) -> None:
    meet = store.add_auctioned_meet(status="live", creator_started_at=T0)

    with pytest.raises(MeetStateError):
        await stop_recording(store, meet.id, now=T0)


@pytest.mark.asyncio
async def test_stop_recording_once(store) -> None:
    meet = store.add_auctioned_meet(status="live", creator_started_at=T0, recording_started_at=T0)
    stopped_at = T0 + timedelta(minutes=5)

    await stop_recording(store, meet.id, now=stopped_at)
    await stop_recording(store, meet.id, now=stopped_at + timedelta(minutes=1))

    assert store.meets[meet.id].recording_stopped_at == stopped_at
    assert store.log_types(meet.id) == ["RECORDING_STOPPED"]


@pytest.mark.asyncio
async def test_list_meet_logs_unknown_meet(store) -> None:
    with pytest.raises(MeetNotFoundError):
        await list_meet_logs(store, "missing")


def test_meeting_timing_windows(store) -> None:
    meet = store.add_auctioned_meet()

    before = meeting_timing(meet, T0 - timedelta(seconds=90, milliseconds=500))
    assert (before.before_start, before.during_meeting, before.after_end) == (True, False, False)
    assert before.seconds_until_start == 90
    assert before.seconds_until_end == 690

    during = meeting_timing(meet, T0 + timedelta(seconds=30))
    assert (during.before_start, during.during_meeting, during.after_end) == (False, True, False)
    assert during.seconds_until_start == -30
    assert during.remaining_seconds == 570

    after = meeting_timing(meet, T0 + timedelta(minutes=11))
    assert (after.before_start, after.during_meeting, after.after_end) == (False, False, True)
    assert after.seconds_until_end == -60
    assert after.remaining_seconds == 0
