"""Redis connection used by the persistent subtitle cache."""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from common.config import settings
from common.retry_utils import RetryPolicy

logger = logging.getLogger(__name__)

PING_TIMEOUT_SECONDS = 5.0

# ensure_connected trusts a successful ping for this long
HEALTH_CHECK_GRACE_SECONDS = 10


class RedisClient:
    """
    Lazily (re)connecting async Redis connection.

    The subtitle cache treats Redis as optional: when the server is down
    ``ensure_connected`` returns False and callers skip caching instead of
    failing.
    """

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url or settings.redis_url
        self.client: Optional[Redis] = None
        self.connected: bool = False
        self._reconnect_lock: Optional[asyncio.Lock] = None
        self._last_ping_at: Optional[float] = None

    @property
    def reconnect_lock(self) -> asyncio.Lock:
        """Created on first use so it binds to the running event loop."""
        if self._reconnect_lock is None:
            self._reconnect_lock = asyncio.Lock()
        return self._reconnect_lock

    @property
    def _connect_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=max(settings.redis_reconnect_max_retries - 1, 0),
            initial_delay=settings.redis_reconnect_initial_delay,
            max_delay=settings.redis_reconnect_max_delay,
        )

    async def _ping(self) -> None:
        await asyncio.wait_for(self.client.ping(), timeout=PING_TIMEOUT_SECONDS)
        self._last_ping_at = time.monotonic()

    def _pinged_recently(self) -> bool:
        return (
            self._last_ping_at is not None
            and time.monotonic() - self._last_ping_at < HEALTH_CHECK_GRACE_SECONDS
        )

    async def _close_client(self) -> None:
        if self.client is None:
            return
        try:
            await self.client.aclose()
        except RedisError as e:
            logger.debug(f"Ignoring error while closing Redis client: {e}")
        self.client = None

    async def connect(self) -> None:
        """
        Connect and ping, backing off between failed attempts.

        Leaves ``connected`` False when every attempt fails; the cache then
        runs disabled.
        """
        policy = self._connect_policy
        attempts = policy.max_retries + 1
        for attempt in range(attempts):
            self.client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=10,
            )
            try:
                await self._ping()
            except (RedisError, asyncio.TimeoutError, OSError) as e:
                self.connected = False
                if attempt + 1 >= attempts:
                    logger.error(f"Redis unreachable after {attempts} attempts: {e}")
                    logger.warning("Subtitle cache disabled - Redis unavailable")
                    return
                delay = policy.base_delay(attempt)
                logger.warning(
                    f"Redis connect attempt {attempt + 1}/{attempts} failed: {e}. "
                    f"Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
            else:
                self.connected = True
                logger.info("✅ Connected to Redis for subtitle cache")
                return

    async def disconnect(self) -> None:
        """Close connection to Redis."""
        if self.client is None:
            return
        await self._close_client()
        self.connected = False
        logger.info("Disconnected from Redis")

    async def _reconnect_with_backoff(self) -> None:
        logger.info("🔄 Reconnecting to Redis...")
        await self._close_client()
        await self.connect()
        if not self.connected:
            logger.error("❌ Redis reconnection failed")

    async def ensure_connected(self) -> bool:
        """
        Return True if Redis is usable, reconnecting when the link is down.

        A ping within the last few seconds is trusted without pinging again.
        """
        if self.connected and self.client:
            if self._pinged_recently():
                return True
            try:
                await self._ping()
                return True
            except (RedisError, asyncio.TimeoutError) as e:
                logger.warning(f"⚠️ Redis connection lost: {e}")
                self.connected = False

        async with self.reconnect_lock:
            # Another task may have reconnected while we waited
            if self.connected and self.client:
                return True
            await self._reconnect_with_backoff()

        return self.connected

    async def health_check(self) -> Dict[str, Any]:
        if not self.client:
            return {
                "connected": False,
                "status": "disconnected",
                "error": "Client not initialized",
            }

        try:
            await self._ping()
        except (RedisError, asyncio.TimeoutError) as e:
            return {"connected": False, "status": "unhealthy", "error": str(e)}
        return {"connected": True, "status": "healthy"}


# Global Redis client instance
redis_client = RedisClient()
