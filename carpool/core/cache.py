import json
from typing import Any, Optional
import redis.asyncio as redis


class RedisCache:
    """JSON values in redis, grouped under ``<prefix>:...`` keys so a whole
    family can be dropped at once."""

    def __init__(self, redis_client: redis.Redis, default_ttl: int = 3600):
        self.redis = redis_client
        self.default_ttl = default_ttl

    async def get(self, key: str) -> Optional[Any]:
        raw = await self.redis.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, expire: Optional[int] = None) -> None:
        await self.redis.set(key, json.dumps(value, default=str), ex=expire or self.default_ttl)

    async def invalidate(self, prefix: str) -> int:
        """Delete every key under ``prefix``; returns how many were removed."""
        keys = [key async for key in self.redis.scan_iter(match=f"{prefix}:*", count=100)]
        if keys:
            await self.redis.delete(*keys)
        return len(keys)

    @staticmethod
    def build_key(*parts) -> str:
        return ":".join(str(part) for part in parts)
