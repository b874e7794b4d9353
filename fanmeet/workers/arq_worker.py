from __future__ import annotations

import logging

from arq.connections import RedisSettings
from arq.cron import cron

from fanmeet.core.config import settings
from fanmeet.core.logging import configure_logging
from fanmeet.db.session import SessionLocal
from fanmeet.services.lifecycle_sweep import run_lifecycle_sweep
from fanmeet.services.meeting_store import SqlMeetingStore

logger = logging.getLogger(__name__)


async def meeting_lifecycle_sweep_job(ctx) -> dict:
    async with SessionLocal() as db:
        summary = await run_lifecycle_sweep(SqlMeetingStore(db))
    return {
        "timestamp": summary.timestamp.isoformat(),
        "no_show_checked": summary.no_show.checked,
        "no_show_cancelled": summary.no_show.cancelled,
        "no_show_failed": summary.no_show.failed,
        "completion_checked": summary.completion.checked,
        "completion_completed": summary.completion.completed,
        "completion_failed": summary.completion.failed,
    }


async def startup(ctx) -> None:
    configure_logging()
    logger.info(
        "Lifecycle worker up: platform_fee_percent=%s earnings_hold_hours=%s interval_minutes=%s",
        settings.platform_fee_percent,
        settings.earnings_hold_hours,
        settings.lifecycle_sweep_interval_minutes,
    )


def _sweep_minutes() -> set[int]:
    return set(range(0, 60, settings.lifecycle_sweep_interval_minutes))


class WorkerSettings:
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    functions = [meeting_lifecycle_sweep_job]
    on_startup = startup
    cron_jobs = [
        cron(
            meeting_lifecycle_sweep_job,
            minute=_sweep_minutes(),
            unique=True,
            timeout=settings.lifecycle_sweep_timeout_seconds,
            run_at_startup=True,
        )
    ]
