from __future__ import annotations

from datetime import datetime

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fanmeet.db.session import get_db
from fanmeet.models.common import utcnow
from fanmeet.services.meeting_lifecycle import (
    MeetingLifecycleError,
    MeetNotFoundError,
    MeetParticipantError,
    MeetStateError,
)
from fanmeet.services.meeting_store import MeetingStore, SqlMeetingStore


async def get_meeting_store(db: AsyncSession = Depends(get_db)) -> MeetingStore:
    return SqlMeetingStore(db)


def get_now() -> datetime:
    return utcnow()


def lifecycle_error_status(exc: MeetingLifecycleError) -> int:
    if isinstance(exc, MeetNotFoundError):
        return 404
    if isinstance(exc, MeetParticipantError):
        return 403
    if isinstance(exc, MeetStateError):
        return 409
    return 400
