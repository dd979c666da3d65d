# scorecard/db/redis_client.py
import redis.asyncio as redis

from scorecard.core.config import get_settings

# Create a Redis client instance
redis_client = redis.from_url(get_settings().redis_url, decode_responses=True)


async def get_redis():
    """
    Dependency to provide Redis client in FastAPI endpoints
    Usage: `redis: redis.Redis = Depends(get_redis)`
    """
    yield redis_client  # the client persists for the app lifetime
