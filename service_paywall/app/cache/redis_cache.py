"""
Redis decision cache for the Paywall Service.
"""

from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
from shared.logging import get_logger, mask_identity
from shared.errors import AccessLayerException, CacheCorruptedError, CacheUnavailableError
from ..models import CACHE_KEY_PREFIX


class RedisDecisionCache:
    """Maps a public key to the seconds of access it was granted."""

    def __init__(self, redis_url: str, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.logger = get_logger("paywall.cache.redis")
        self.redis: Optional[redis.Redis] = client

    async def start(self):
        """Start the Redis cache."""
        if self.redis is not None:
            return
        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                health_check_interval=30
            )

            await self.redis.ping()

            self.logger.info("Redis cache started")

        except (RedisError, OSError) as e:
            self.logger.error("Failed to start Redis cache", error=str(e))
            raise AccessLayerException("REDIS_START_FAILED", str(e))

    async def stop(self):
        """Stop the Redis cache."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis cache stopped")

    @staticmethod
    def key_for(public_key: str) -> str:
        """Cache key for a presented public key."""
        return f"{CACHE_KEY_PREFIX}{public_key}"

    async def get(self, public_key: str) -> Optional[int]:
        """
        Seconds of access recorded for ``public_key``.

        Returns None for an absent or already lapsed record. Raises
        CacheCorruptedError when the stored value is not an integer.
        """
        cache_key = self.key_for(public_key)
        try:
            cached = await self._client().get(cache_key)
        except (RedisError, OSError) as e:
            self.logger.error("Error reading decision cache", error=str(e))
            raise CacheUnavailableError(details={"error": str(e)})

        if cached is None:
            return None

        if isinstance(cached, bytes):
            cached = cached.decode("utf-8", errors="replace")
        try:
            seconds = int(str(cached).strip())
        except ValueError:
            raise CacheCorruptedError(details={"key": self.key_for(mask_identity(public_key))})

        if seconds <= 0:
            return None

        return seconds

    async def put(self, public_key: str, seconds_remaining: int):
        """Record ``seconds_remaining`` of access, expiring after as many seconds."""
        if seconds_remaining <= 0:
            raise ValueError("seconds_remaining must be positive")

        cache_key = self.key_for(public_key)
        try:
            await self._client().set(cache_key, str(seconds_remaining), ex=seconds_remaining)
        except (RedisError, OSError) as e:
            self.logger.error("Error writing decision cache", error=str(e))
            raise CacheUnavailableError(details={"error": str(e)})

        self.logger.debug("Cached access decision", identity=mask_identity(public_key), ttl=seconds_remaining)

    async def health_check(self) -> bool:
        """Check Redis health."""
        if self.redis is None:
            return False
        try:
            await self.redis.ping()
            return True
        except (RedisError, OSError):
            return False

    def _client(self) -> redis.Redis:
        if self.redis is None:
            raise CacheUnavailableError("Decision cache is not connected")
        return self.redis
