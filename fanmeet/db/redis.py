from __future__ import annotations

from redis.asyncio import Redis, from_url

from fanmeet.core.config import settings

redis_client: Redis = from_url(settings.redis_url, decode_responses=True)
