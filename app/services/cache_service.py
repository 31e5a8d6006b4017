"""Redis cache-aside service for category reads"""
import json
import redis
from typing import Any, Optional
from datetime import timedelta
from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

CATEGORY_NAMESPACE = "categories"


class CacheService:
    """Service for caching category query results in Redis"""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        namespace: str = CATEGORY_NAMESPACE,
        ttl_minutes: Optional[int] = None,
        redis_client: Optional[Any] = None,
        enabled: bool = True,
    ):
        """
        Initialize the cache service.

        Args:
            redis_url: Redis URL (defaults to settings.cache_redis_url)
            namespace: Prefix applied to every key this service touches
            ttl_minutes: Cache TTL in minutes (defaults to settings.CACHE_TTL_MINUTES)
            redis_client: Pre-built client; skips connecting when given
            enabled: When False the service never touches Redis
        """
        self.namespace = namespace
        self.ttl = timedelta(minutes=ttl_minutes or settings.CACHE_TTL_MINUTES)
        self.redis_url = redis_url or settings.cache_redis_url

        if not enabled:
            self.redis_client = None
            return

        if redis_client is not None:
            self.redis_client = redis_client
            return

        try:
            conn_params = {
                "decode_responses": True,
                "socket_connect_timeout": 5,
                "socket_timeout": 5,
                "retry_on_timeout": True,
                "health_check_interval": 30
            }

            # Add SSL parameters for rediss:// URLs
            if self.redis_url.startswith("rediss://"):
                conn_params["ssl_cert_reqs"] = "none"

            self.redis_client = redis.from_url(self.redis_url, **conn_params)
            self.redis_client.ping()
            logger.info(f"Connected to Redis cache at {self.redis_url}")
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis cache: {e}")
            self.redis_client = None

    def key(self, *parts: Any) -> str:
        """Build a namespaced key, e.g. key("children", 3) -> categories:children:3"""
        return ":".join([self.namespace, *[str(part) for part in parts]])

    def get(self, key: str) -> Optional[Any]:
        """
        Retrieve a cached JSON value.

        Returns:
            Decoded value if found, None on miss or when Redis is unavailable
        """
        if self.redis_client is None:
            return None

        try:
            json_data = self.redis_client.get(key)
            if json_data is None:
                logger.debug(f"Cache miss for key: {key}")
                return None
            logger.debug(f"Cache hit for key: {key}")
            return json.loads(json_data)
        except redis.RedisError as e:
            logger.error(f"Failed to retrieve cached value for {key}: {e}")
            return None

    def set(self, key: str, data: Any, ttl: Optional[timedelta] = None) -> bool:
        """
        Cache a JSON-serializable value.

        Returns:
            True if cached successfully, False otherwise
        """
        if self.redis_client is None:
            return False

        try:
            json_data = json.dumps(data, separators=(',', ':'), default=str)
            ttl_seconds = int((ttl or self.ttl).total_seconds())
            self.redis_client.setex(key, ttl_seconds, json_data)
            logger.debug(f"Cached value with key: {key} (TTL: {ttl_seconds}s)")
            return True
        except (redis.RedisError, TypeError) as e:
            logger.error(f"Failed to cache value for {key}: {e}")
            return False

    def invalidate_all(self) -> int:
        """
        Evict every key in this service's namespace.

        Returns:
            Number of keys deleted
        """
        if self.redis_client is None:
            return 0

        try:
            keys = list(self.redis_client.scan_iter(match=f"{self.namespace}:*", count=500))
            if not keys:
                return 0
            deleted = self.redis_client.delete(*keys)
            logger.info(f"Invalidated {deleted} cache keys in namespace '{self.namespace}'")
            return deleted
        except redis.RedisError as e:
            logger.error(f"Failed to invalidate cache namespace '{self.namespace}': {e}")
            return 0

    def close(self):
        """Close Redis connection"""
        if self.redis_client is not None:
            self.redis_client.close()
            logger.info("Closed Redis cache connection")


# Singleton instance
_cache_service: Optional[CacheService] = None


def get_cache_service() -> CacheService:
    """Get or create the cache service singleton"""
    global _cache_service
    if _cache_service is None:
        if settings.CACHE_ENABLED:
            _cache_service = CacheService()
        else:
            _cache_service = CacheService(enabled=False)
    return _cache_service
