"""
Read-through Redis cache for attendance status.

The database stays the system of record: a cache miss, a disabled cache or an
unreachable Redis all fall back to reading the session ledger.

Each member has a generation counter that every mutation increments. Payloads
are stored under the generation that was current before the database read, so
a read racing a mutation can only populate a key that is already retired.
"""
from typing import Optional, Tuple
import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.redis import get_redis

logger = logging.getLogger(__name__)


class StatusCache:
    """Cache the status payload per member, invalidated on every mutation."""

    def __init__(self):
        self.client: Optional[redis.Redis] = None
        self.prefix = "attendance:status:"

    async def _get_client(self) -> redis.Redis:
        if not self.client:
            self.client = await get_redis()
        return self.client

    def _generation_key(self, org_id: str, member_id: str) -> str:
        return f"{self.prefix}{org_id}:{member_id}:generation"

    def _get_key(self, org_id: str, member_id: str, generation: int) -> str:
        return f"{self.prefix}{org_id}:{member_id}:{generation}"

    async def get(self, org_id: str, member_id: str) -> Tuple[Optional[int], Optional[dict]]:
        """
        Current generation and the payload cached under it.

        Returns ``(None, None)`` when the cache is disabled or unreachable;
        a ``None`` generation makes the following ``set`` a no-op.
        """
        if not settings.STATUS_CACHE_ENABLED:
            return None, None
        try:
            client = await self._get_client()
            generation = int(await client.get(self._generation_key(org_id, member_id)) or 0)
            value = await client.get(self._get_key(org_id, member_id, generation))
        except RedisError as e:
            logger.warning(f"Status cache read failed, using database: {e}")
            return None, None
        return generation, json.loads(value) if value else None

    async def set(self, org_id: str, member_id: str, generation: Optional[int], payload: dict):
        if not settings.STATUS_CACHE_ENABLED or generation is None:
            return
        try:
            client = await self._get_client()
            await client.set(
                self._get_key(org_id, member_id, generation),
                json.dumps(payload),
                ex=settings.STATUS_CACHE_TTL
            )
        except RedisError as e:
            logger.warning(f"Status cache write failed: {e}")

    async def invalidate(self, org_id: str, member_id: str):
        """Retire every payload cached so far for the member."""
        if not settings.STATUS_CACHE_ENABLED:
            return
        try:
            client = await self._get_client()
            await client.incr(self._generation_key(org_id, member_id))
        except RedisError as e:
            logger.warning(f"Status cache invalidation failed for member {member_id}: {e}")


# Global status cache instance
status_cache = StatusCache()
