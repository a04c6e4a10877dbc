# carpool/core/redis_lifecycle.py
import redis.asyncio as redis
from typing import AsyncGenerator, Optional

from carpool.core.cache import RedisCache
from carpool.core.config import settings
from carpool.core.logger import logger

# One connection pool per process, shared by the token registry and the cache
_redis_client: Optional[redis.Redis] = None


async def init_redis_client() -> redis.Redis:
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        await client.ping()
    except redis.ConnectionError as exc:
        await client.aclose()
        logger.error(f"Redis is unreachable: {exc}")
        raise RuntimeError("Could not connect to Redis server") from exc

    _redis_client = client
    logger.info("Connected to Redis")
    return _redis_client


async def get_redis_client() -> AsyncGenerator[redis.Redis, None]:
    yield await init_redis_client()


async def get_cache() -> AsyncGenerator[RedisCache, None]:
    yield RedisCache(await init_redis_client(), default_ttl=settings.POI_CACHE_TTL_SECONDS)


async def close_redis():
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Redis connection closed")
