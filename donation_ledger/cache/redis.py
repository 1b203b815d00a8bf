import json
from typing import Optional
from datetime import timedelta
import redis
import structlog

from donation_ledger.core.config import get_settings
from donation_ledger.middleware.metrics import cache_operations_total

logger = structlog.get_logger(__name__)
settings = get_settings()


class RedisCache:
    """Read-through cache for goal progress.

    Every method degrades to a miss when redis is not configured or not
    reachable; the ledger never depends on the cache for correctness.
    """

    def __init__(self):
        self.redis_client: Optional[redis.Redis] = None

    def init_redis(self) -> Optional[redis.Redis]:
        """Initialize Redis connection"""
        if not settings.redis_url:
            logger.info("Redis not configured, goal progress cache disabled")
            return None

        self.redis_client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True
        )

        try:
            self.redis_client.ping()
            logger.info("Redis connection established successfully", redis_url=settings.redis_url)
            return self.redis_client
        except redis.RedisError as e:
            logger.error("Failed to connect to Redis", error=str(e))
            self.redis_client = None
            raise ConnectionError(f"Failed to connect to Redis: {e}")

    def close(self):
        """Close Redis connection"""
        if self.redis_client:
            self.redis_client.close()
            self.redis_client = None
            logger.info("Redis connection closed")

    def _get_goal_progress_key(self, association_id: str) -> str:
        return f"goal_progress:{association_id}"

    def get_goal_progress(self, association_id: str) -> Optional[dict]:
        if not self.redis_client:
            return None

        try:
            cached_data = self.redis_client.get(self._get_goal_progress_key(association_id))
        except redis.RedisError as e:
            cache_operations_total.labels(operation="get", status="error").inc()
            logger.warning("Failed to get goal progress from cache",
                           association_id=association_id, error=str(e))
            return None

        if cached_data:
            cache_operations_total.labels(operation="get", status="hit").inc()
            logger.debug("Cache hit", association_id=association_id)
            return json.loads(cached_data)

        cache_operations_total.labels(operation="get", status="miss").inc()
        logger.debug("Cache miss", association_id=association_id)
        return None

    def set_goal_progress(self, association_id: str, progress: dict,
                          ttl: Optional[timedelta] = None) -> bool:
        if not self.redis_client:
            return False

        ttl = ttl or timedelta(seconds=settings.goal_progress_cache_ttl_seconds)
        try:
            self.redis_client.setex(
                self._get_goal_progress_key(association_id),
                int(ttl.total_seconds()),
                json.dumps(progress, default=str)
            )
        except redis.RedisError as e:
            cache_operations_total.labels(operation="set", status="error").inc()
            logger.warning("Failed to cache goal progress",
                           association_id=association_id, error=str(e))
            return False

        cache_operations_total.labels(operation="set", status="ok").inc()
        logger.debug("Goal progress cached", association_id=association_id,
                     ttl_seconds=int(ttl.total_seconds()))
        return True

    def delete_goal_progress(self, association_id: str) -> bool:
        if not self.redis_client:
            return False

        try:
            result = self.redis_client.delete(self._get_goal_progress_key(association_id))
        except redis.RedisError as e:
            cache_operations_total.labels(operation="delete", status="error").inc()
            logger.warning("Failed to invalidate goal progress",
                           association_id=association_id, error=str(e))
            return False

        if result:
            logger.debug("Goal progress cache invalidated", association_id=association_id)
        return bool(result)


# Global cache instance
redis_cache = RedisCache()
