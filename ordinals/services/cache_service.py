import redis
import json
import structlog
from typing import Optional, Any

from ordinals.config import settings

logger = structlog.get_logger()


class CacheService:
    """Redis cache for read API responses, keyed by change fingerprint"""

    def __init__(self, redis_client=None):
        self.enabled = settings.CACHE_ENABLED
        self.default_ttl = settings.CACHE_TTL
        if redis_client is None and self.enabled:
            redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        self.redis_client = redis_client

    def get(self, key: str) -> Optional[Any]:
        """Get cached value"""
        if not self.enabled:
            return None
        try:
            cached = self.redis_client.get(key)
            if cached:
                return json.loads(cached)
        except (redis.RedisError, ValueError) as e:
            logger.error("Cache get failed", key=key, error=str(e))
        return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set cached value with TTL"""
        if not self.enabled:
            return False
        try:
            return bool(self.redis_client.setex(key, ttl or self.default_ttl, json.dumps(value, default=str)))
        except (redis.RedisError, TypeError) as e:
            logger.error("Cache set failed", key=key, error=str(e))
            return False

    def generate_key(self, prefix: str, *args) -> str:
        """Generate cache key"""
        return f"{prefix}:{'_'.join(str(arg) for arg in args)}"
