from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from fanmeet.services.lifecycle_sweep import PhaseSummary, SweepSummary


class MeetOutcomeOut(BaseModel):
    meet_id: str
    status: str
    reason: str | None = None


class NoShowCheckOut(BaseModel):
    checked: int = 0
    cancelled: int = 0
    skipped: int = 0
    failed: int = 0
    error: str | None = None
    outcomes: list[MeetOutcomeOut] = Field(default_factory=list)


class CompletionCheckOut(BaseModel):
    checked: int = 0
    completed: int = 0
    skipped: int = 0
    failed: int = 0
    error: str | None = None
    outcomes: list[MeetOutcomeOut] = Field(default_factory=list)


class SweepOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    timestamp: datetime
    no_show_check: NoShowCheckOut = Field(alias="noShowCheck")
    completion_check: CompletionCheckOut = Field(alias="completionCheck")


class SweepErrorOut(BaseModel):
    success: bool = False
    error: str


def _outcomes(summary: PhaseSummary) -> list[MeetOutcomeOut]:
    return [MeetOutcomeOut(meet_id=o.meet_id, status=o.status, reason=o.reason) for o in summary.outcomes]


def to_sweep_out(summary: SweepSummary) -> SweepOut:
    return SweepOut(
        timestamp=summary.timestamp,
        no_show_check=NoShowCheckOut(
            checked=summary.no_show.checked,
            cancelled=summary.no_show.cancelled,
            skipped=summary.no_show.skipped,
            failed=summary.no_show.failed,
            error=summary.no_show.error,
            outcomes=_outcomes(summary.no_show),
        ),
        completion_check=CompletionCheckOut(
            checked=summary.completion.checked,
            completed=summary.completion.completed,
            skipped=summary.completion.skipped,
            failed=summary.completion.failed,
            error=summary.completion.error,
            outcomes=_outcomes(summary.completion),
        ),
    )
