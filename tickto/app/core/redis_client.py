"""
Redis client initialization and connection management.

Redis holds the reconciliation bookkeeping shared by all workers: the time of
the last successful status pass and the short-lived lock that keeps
concurrent requests from running the same pass twice.
"""

import redis.asyncio as redis
from tickto.app.core.config import settings


# Create async Redis client
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """
    Get Redis client instance.
    
    Used as a FastAPI dependency so tests can swap the client.
    """
    return redis_client


async def ping_redis() -> bool:
    """Test Redis connection; False when Redis cannot be reached."""
    try:
        return await redis_client.ping()
    except (redis.RedisError, OSError):
        return False
