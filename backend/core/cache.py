"""
Redis read cache shared by the consumers and the use cases.
Cache failures never fail the caller; they are logged and treated as a miss.
"""
import redis.asyncio as redis
import json
import logging
from typing import Any, Optional
from core.config import settings

logger = logging.getLogger(__name__)


def inventory_cache_key(product_id: str) -> str:
    return f"inventory:product:{product_id}"


class RedisManager:
    """
    Redis connection manager with connection pooling
    """

    def __init__(self, url: Optional[str] = None):
        self._url = url or settings.REDIS_URL
        self._pool = None
        self._client = None

    async def get_client(self) -> redis.Redis:
        """Get Redis client with connection pooling"""
        if self._client is None:
            self._pool = redis.ConnectionPool.from_url(
                self._url,
                max_connections=20,
                retry_on_timeout=True,
                socket_keepalive=True,
                health_check_interval=30
            )
            self._client = redis.Redis(connection_pool=self._pool)
        return self._client

    async def close(self):
        """Close Redis connections"""
        if self._client:
            await self._client.close()
        if self._pool:
            await self._pool.disconnect()
        self._client = None
        self._pool = None


# Global Redis manager instance
redis_manager = RedisManager()


class CacheService:
    """JSON get/set/delete over Redis."""

    def __init__(self, manager: Optional[RedisManager] = None, default_ttl: Optional[int] = None):
        self.manager = manager or redis_manager
        self.default_ttl = default_ttl or settings.CACHE_TTL_INVENTORY

    async def get_json(self, key: str) -> Optional[Any]:
        try:
            client = await self.manager.get_client()
            raw = await client.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    async def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        try:
            client = await self.manager.get_client()
            await client.setex(key, ttl or self.default_ttl, json.dumps(value, default=str))
            return True
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            client = await self.manager.get_client()
            await client.delete(key)
            return True
        except Exception as e:
            logger.warning(f"Cache invalidation failed for {key}: {e}")
            return False
