from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import ORJSONResponse

from fanmeet.api.v1.deps import get_meeting_store, get_now
from fanmeet.schemas.lifecycle import SweepErrorOut, SweepOut, to_sweep_out
from fanmeet.services.lifecycle_sweep import run_lifecycle_sweep
from fanmeet.services.meeting_store import MeetingStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lifecycle", tags=["lifecycle"])


@router.api_route(
    "/sweep",
    methods=["GET", "POST"],
    response_model=SweepOut,
    responses={500: {"model": SweepErrorOut}},
)
async def trigger_lifecycle_sweep(
    store: MeetingStore = Depends(get_meeting_store),
    now: datetime = Depends(get_now),
):
    try:
        summary = await run_lifecycle_sweep(store, now=now)
    except Exception as exc:
        logger.exception("Meeting lifecycle sweep failed")
        return ORJSONResponse(status_code=500, content=SweepErrorOut(error=str(exc)).model_dump())
    return to_sweep_out(summary)
