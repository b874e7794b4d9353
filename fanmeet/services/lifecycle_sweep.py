"""Periodic meeting lifecycle sweep.

Each run has two independent phases:

* no-show detection: scheduled meets whose start has passed without the
  creator going live are cancelled and the fan is refunded in full;
* completion: live meets past their scheduled end are completed and the
  creator is credited with the winning bid minus the platform fee.

Every meet is handled on its own. A failure is recorded as that meet's
outcome and the loop moves on. Status changes are compare-and-swap writes made
before any money moves, so a meet picked up by two overlapping runs is only
settled by the run that wins the swap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from fanmeet.core.config import settings
from fanmeet.models.common import utcnow
from fanmeet.models.meet import STATUS_CANCELLED_NO_SHOW, STATUS_COMPLETED, STATUS_LIVE, STATUS_SCHEDULED
from fanmeet.services.ledger import RefundResult, build_refund_id, credit_host_share, refund_full, resolve_winning_bid
from fanmeet.services.meeting_store import MeetingStore, MeetRecord, as_iso

logger = logging.getLogger(__name__)

NO_SHOW_REASON = "CREATOR_NO_SHOW"

OUTCOME_CANCELLED = "cancelled"
OUTCOME_COMPLETED = "completed"
OUTCOME_SKIPPED = "skipped"
OUTCOME_FAILED = "failed"


@dataclass(frozen=True)
class MeetOutcome:
    meet_id: str
    status: str
    reason: str | None = None


@dataclass
class PhaseSummary:
    checked: int = 0
    outcomes: list[MeetOutcome] = field(default_factory=list)
    error: str | None = None

    def count(self, status: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def cancelled(self) -> int:
        return self.count(OUTCOME_CANCELLED)

    @property
    def completed(self) -> int:
        return self.count(OUTCOME_COMPLETED)

    @property
    def skipped(self) -> int:
        return self.count(OUTCOME_SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(OUTCOME_FAILED)


@dataclass(frozen=True)
class SweepSummary:
    timestamp: datetime
    no_show: PhaseSummary
    completion: PhaseSummary


def is_creator_no_show(meet: MeetRecord) -> bool:
    # Going live at exactly the scheduled instant does not count as starting before it.
    if meet.creator_started_at is None:
        return True
    return meet.creator_started_at >= meet.scheduled_at


async def _log_event(
    store: MeetingStore,
    meet_id: str,
    event_type: str,
    metadata: dict[str, Any],
    *,
    now: datetime,
) -> None:
    try:
        await store.append_event_log(meet_id, event_type, metadata, timestamp=now)
    except Exception:
        logger.exception("Failed to append %s to the event log of meet id=%s", event_type, meet_id)


async def _cancel_no_show(store: MeetingStore, meet: MeetRecord, now: datetime) -> MeetOutcome:
    if not is_creator_no_show(meet):
        return MeetOutcome(meet.id, OUTCOME_SKIPPED, "creator_started")

    moved = await store.transition_meet(
        meet.id,
        from_status=STATUS_SCHEDULED,
        to_status=STATUS_CANCELLED_NO_SHOW,
        cancelled_at=now,
        cancellation_reason=NO_SHOW_REASON,
    )
    if not moved:
        logger.info("Meet id=%s left the scheduled state before cancellation", meet.id)
        return MeetOutcome(meet.id, OUTCOME_SKIPPED, "status_changed")

    logger.info("Cancelling meet id=%s - creator no-show", meet.id)
    await _log_event(
        store,
        meet.id,
        "MEETING_CANCELLED_NO_SHOW_CREATOR",
        {
            "cancelled_at": as_iso(now),
            "scheduled_start": as_iso(meet.scheduled_at),
            "creator_started_at": as_iso(meet.creator_started_at),
        },
        now=now,
    )
    await _log_event(
        store,
        meet.id,
        "FAN_JOIN_STATUS_AT_S",
        {"fan_joined": meet.fan_joined_at is not None, "fan_joined_at": as_iso(meet.fan_joined_at)},
        now=now,
    )

    try:
        event, bid = await resolve_winning_bid(store, meet.event_id)
    except Exception as exc:
        logger.exception("Winning bid lookup failed for meet id=%s", meet.id)
        refund = RefundResult(success=False, refund_id=build_refund_id(meet.id, now), amount=0, error=str(exc))
    else:
        refund = await refund_full(store, meet, event, bid, now=now)

    try:
        await store.update_meet(meet.id, refund_id=refund.refund_id)
    except Exception:
        logger.exception("Failed to store refund id=%s on meet id=%s", refund.refund_id, meet.id)

    await _log_event(
        store,
        meet.id,
        "REFUND_ISSUED",
        {
            "refund_id": refund.refund_id,
            "fan_id": meet.fan_id,
            "amount": refund.amount,
            "reason": NO_SHOW_REASON,
            "refund_marked": refund.success,
            "bid_marked": refund.bid_marked,
            "error": refund.error,
        },
        now=now,
    )
    logger.info("Meet id=%s cancelled, refund amount=%s success=%s", meet.id, refund.amount, refund.success)
    if not refund.success:
        return MeetOutcome(meet.id, OUTCOME_CANCELLED, refund.error)
    if not refund.bid_marked:
        return MeetOutcome(meet.id, OUTCOME_CANCELLED, "bid_mark_failed")
    return MeetOutcome(meet.id, OUTCOME_CANCELLED)


async def _complete_meet(
    store: MeetingStore,
    meet: MeetRecord,
    now: datetime,
    *,
    fee_percent: int,
    hold: timedelta,
) -> MeetOutcome:
    if now < meet.scheduled_end:
        return MeetOutcome(meet.id, OUTCOME_SKIPPED, "not_ended")

    # An open recording is closed in the same conditional write, so only the run that wins the swap stamps it.
    recording_open = meet.recording_started_at is not None and meet.recording_stopped_at is None
    fields = {"completed_at": now}
    if recording_open:
        fields["recording_stopped_at"] = now

    moved = await store.transition_meet(meet.id, from_status=STATUS_LIVE, to_status=STATUS_COMPLETED, **fields)
    if not moved:
        logger.info("Meet id=%s left the live state before completion", meet.id)
        return MeetOutcome(meet.id, OUTCOME_SKIPPED, "status_changed")

    recording_stopped_at = meet.recording_stopped_at
    if recording_open:
        recording_stopped_at = now
        await _log_event(store, meet.id, "RECORDING_STOPPED", {"stopped_at": as_iso(now)}, now=now)

    logger.info("Completing meet id=%s - reached scheduled end", meet.id)
    credited = False
    skip_reason: str | None = None
    try:
        event, bid = await resolve_winning_bid(store, meet.event_id)
    except Exception:
        logger.exception("Winning bid lookup failed for meet id=%s", meet.id)
        skip_reason = "bid_lookup_failed"
    else:
        if bid is None:
            logger.info("No winning bid found for meet id=%s, creator not credited", meet.id)
            skip_reason = "no_winning_bid"
        elif int(bid.amount) <= 0:
            skip_reason = "zero_bid_amount"
        else:
            credited = await credit_host_share(store, meet, event, bid, fee_percent=fee_percent, hold=hold, now=now)
            if not credited:
                skip_reason = "credit_failed"

    await _log_event(
        store,
        meet.id,
        "MEETING_COMPLETED",
        {
            "completed_at": as_iso(now),
            "creator_started_at": as_iso(meet.creator_started_at),
            "creator_joined_at": as_iso(meet.creator_joined_at),
            "fan_joined_at": as_iso(meet.fan_joined_at),
            "recording_started_at": as_iso(meet.recording_started_at),
            "recording_stopped_at": as_iso(recording_stopped_at),
            "creator_credited": credited,
            "credit_skipped_reason": skip_reason,
        },
        now=now,
    )
    logger.info("Meet id=%s completed, creator credited: %s", meet.id, credited)
    return MeetOutcome(meet.id, OUTCOME_COMPLETED, skip_reason)


async def sweep_no_shows(store: MeetingStore, now: datetime) -> PhaseSummary:
    summary = PhaseSummary()
    try:
        meets = await store.list_meets(status=STATUS_SCHEDULED, scheduled_before=now)
    except Exception as exc:
        logger.exception("Fetching scheduled meets failed")
        summary.error = str(exc)
        return summary

    summary.checked = len(meets)
    if not meets:
        logger.info("No meets past their scheduled start")
        return summary

    logger.info("Found %s meets past their scheduled start", len(meets))
    for meet in meets:
        try:
            outcome = await _cancel_no_show(store, meet, now)
        except Exception as exc:
            logger.exception("No-show check failed for meet id=%s", meet.id)
            outcome = MeetOutcome(meet.id, OUTCOME_FAILED, str(exc))
        summary.outcomes.append(outcome)
    return summary


async def sweep_completions(
    store: MeetingStore,
    now: datetime,
    *,
    fee_percent: int | None = None,
    hold: timedelta | None = None,
) -> PhaseSummary:
    fee = settings.platform_fee_percent if fee_percent is None else fee_percent
    hold_period = settings.earnings_hold if hold is None else hold

    summary = PhaseSummary()
    try:
        meets = await store.list_meets(status=STATUS_LIVE)
    except Exception as exc:
        logger.exception("Fetching live meets failed")
        summary.error = str(exc)
        return summary

    summary.checked = len(meets)
    if not meets:
        logger.info("No live meets")
        return summary

    for meet in meets:
        try:
            outcome = await _complete_meet(store, meet, now, fee_percent=fee, hold=hold_period)
        except Exception as exc:
            logger.exception("Completion check failed for meet id=%s", meet.id)
            outcome = MeetOutcome(meet.id, OUTCOME_FAILED, str(exc))
        summary.outcomes.append(outcome)
    return summary


async def run_lifecycle_sweep(store: MeetingStore, *, now: datetime | None = None) -> SweepSummary:
    now = now or utcnow()
    logger.info("Meeting lifecycle sweep @ %s", now.isoformat())
    no_show = await sweep_no_shows(store, now)
    completion = await sweep_completions(store, now)
    logger.info(
        "Meeting lifecycle sweep done: no-show checked=%s cancelled=%s failed=%s; "
        "completion checked=%s completed=%s failed=%s",
        no_show.checked,
        no_show.cancelled,
        no_show.failed,
        completion.checked,
        completion.completed,
        completion.failed,
    )
    return SweepSummary(timestamp=now, no_show=no_show, completion=completion)
