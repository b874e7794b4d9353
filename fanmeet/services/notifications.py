from __future__ import annotations

import json
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from fanmeet.db.redis import redis_client
from fanmeet.models.notification import Notification

logger = logging.getLogger(__name__)


def notification_channel(user_id: str) -> str:
    return f"notif:{user_id}"


def to_realtime_message(row: Notification) -> dict:
    return {
        "id": row.id,
        "kind": row.kind,
        "title": row.title,
        "body": row.body,
        "event_id": row.event_id,
        "payload": row.payload,
        "is_read": row.is_read,
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


async def create_notification(
    db: AsyncSession,
    *,
    user_id: str,
    kind: str,
    title: str,
    body: str,
    event_id: str | None = None,
    payload: dict | None = None,
) -> Notification:
    """Persist a notification for ``user_id`` and fan it out to their realtime channel."""
    row = Notification(
        user_id=user_id,
        kind=kind,
        title=title,
        body=body,
        event_id=event_id,
        payload=payload or {},
    )
    db.add(row)
    await db.commit()
    await db.refresh(row)

    try:
        await redis_client.publish(notification_channel(user_id), json.dumps(to_realtime_message(row)))
    except Exception:
        # The row is the source of truth; realtime fanout is best effort.
        logger.warning("Realtime publish failed for notification id=%s kind=%s", row.id, kind, exc_info=True)
    return row
