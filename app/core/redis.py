import redis.asyncio as redis
from typing import Optional
from app.core.config import settings

# Shared client, created on first use and closed on shutdown
redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Return the shared client for REDIS_URL."""
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True
        )
    return redis_client


async def close_redis():
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
