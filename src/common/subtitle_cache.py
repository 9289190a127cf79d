"""Redis-backed persistent cache for translated subtitle cue lists."""

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import ValidationError
from redis.exceptions import OutOfMemoryError, RedisError

from common.config import settings
from common.redis_client import RedisClient, redis_client
from common.schemas import SUBTITLE_CACHE_VERSION, SubtitleCacheEntry
from common.subtitle_parser import Cue
from common.utils import MathUtils

logger = logging.getLogger(__name__)


class SubtitleCache:
    """
    Persistent cache of translated cue lists keyed by (video_id, lang).

    The cache is a best-effort optimization: every Redis failure degrades to a
    miss or a dropped write and is logged, never raised.
    """

    def __init__(
        self,
        client: Optional[RedisClient] = None,
        ttl_seconds: Optional[int] = None,
        max_entries: Optional[int] = None,
        min_translated_ratio: Optional[float] = None,
        key_prefix: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the subtitle cache.

        Args:
            client: Redis client wrapper, defaults to the global instance
            ttl_seconds: Entry lifetime, defaults to settings (7 days)
            max_entries: Maximum number of cached videos before eviction
            min_translated_ratio: Minimum translated share required to cache
            key_prefix: Prefix shared by every cache key
            clock: Time source returning epoch seconds
        """
        self.redis = client or redis_client
        self.ttl_seconds = ttl_seconds or settings.subtitle_cache_ttl_seconds
        self.max_entries = max_entries or settings.subtitle_cache_max_entries
        self.min_translated_ratio = (
            settings.subtitle_cache_min_translated_ratio
            if min_translated_ratio is None
            else min_translated_ratio
        )
        self.key_prefix = key_prefix or settings.subtitle_cache_key_prefix
        self._clock = clock

    def make_key(self, video_id: str, lang: str) -> str:
        """
        Generate the Redis key for a cached video.

        Example:
            >>> SubtitleCache(key_prefix="bilingual_cache:").make_key("abc", "zh-TW")
            'bilingual_cache:v1:abc:zh-TW'
        """
        return f"{self.key_prefix}v{SUBTITLE_CACHE_VERSION}:{video_id}:{lang}"

    @property
    def _match_pattern(self) -> str:
        return f"{self.key_prefix}*"

    async def get(self, video_id: str, lang: str) -> Optional[List[Cue]]:
        """
        Get cached translations for a video.

        Stale, version-mismatched or corrupt entries are deleted.

        Args:
            video_id: Video identifier
            lang: Target language code

        Returns:
            Cached cues, or None if not found or expired
        """
        if not await self.redis.ensure_connected():
            logger.warning(f"Redis unavailable - subtitle cache miss for {video_id}")
            return None

        key = self.make_key(video_id, lang)
        try:
            raw = await self.redis.client.get(key)
            if not raw:
                return None

            entry = self._parse_entry(raw)
            if entry is None or entry.version != SUBTITLE_CACHE_VERSION:
                await self.redis.client.delete(key)
                logger.info(f"[SUBTITLE-CACHE] Discarded invalid entry: {video_id}")
                return None

            now = self._clock()
            if entry.is_expired(now):
                await self.redis.client.delete(key)
                logger.info(f"[SUBTITLE-CACHE] Expired: {video_id}")
                return None

            entry.last_accessed = now
            await self.redis.client.set(
                key, entry.model_dump_json(), keepttl=True
            )

            logger.info(
                f"[SUBTITLE-CACHE] HIT: {video_id} ({len(entry.subtitles)} subtitles)"
            )
            return list(entry.subtitles)

        except RedisError as e:
            logger.error(f"[SUBTITLE-CACHE] Get error for {video_id}: {e}")
            return None

    async def set(self, video_id: str, lang: str, cues: Sequence[Cue]) -> bool:
        """
        Save translations to the cache.

        Partially translated lists (below the configured ratio) are not cached.

        Args:
            video_id: Video identifier
            lang: Target language code
            cues: Cue list with translations

        Returns:
            True if the entry was written, False otherwise
        """
        if not cues:
            return False

        translated_count = sum(1 for cue in cues if cue.translation)
        ratio = MathUtils.calculate_ratio(translated_count, len(cues))
        if ratio < self.min_translated_ratio:
            logger.info(
                f"[SUBTITLE-CACHE] Not caching: only {translated_count}/{len(cues)} translated"
            )
            return False

        if not await self.redis.ensure_connected():
            logger.warning(f"Redis unavailable - cannot cache subtitles for {video_id}")
            return False

        key = self.make_key(video_id, lang)
        try:
            await self._write_entry(key, video_id, lang, cues)
        except OutOfMemoryError as e:
            logger.warning(
                f"[SUBTITLE-CACHE] Storage full while caching {video_id}: {e}. "
                f"Clearing expired entries and retrying once"
            )
            await self.clear_expired()
            try:
                await self._write_entry(key, video_id, lang, cues)
            except RedisError as retry_error:
                logger.error(
                    f"[SUBTITLE-CACHE] Giving up on caching {video_id}: {retry_error}"
                )
                return False
        except RedisError as e:
            logger.error(f"[SUBTITLE-CACHE] Set error for {video_id}: {e}")
            return False

        logger.info(f"[SUBTITLE-CACHE] SET: {video_id} ({len(cues)} subtitles)")
        await self._cleanup_old_entries()
        return True

    async def _write_entry(
        self, key: str, video_id: str, lang: str, cues: Sequence[Cue]
    ) -> None:
        now = self._clock()
        entry = SubtitleCacheEntry(
            video_id=video_id,
            lang=lang,
            subtitles=list(cues),
            created_at=now,
            last_accessed=now,
            expires_at=now + self.ttl_seconds,
        )
        await self.redis.client.set(key, entry.model_dump_json(), ex=self.ttl_seconds)

    def _parse_entry(self, raw: str) -> Optional[SubtitleCacheEntry]:
        try:
            return SubtitleCacheEntry.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"[SUBTITLE-CACHE] Corrupt entry: {e.error_count()} errors")
            return None

    async def _load_metadata(self) -> Dict[str, Optional[Dict[str, Any]]]:
        """Map each cache key to its decoded payload, or None if unreadable."""
        entries: Dict[str, Optional[Dict[str, Any]]] = {}
        async for key in self.redis.client.scan_iter(match=self._match_pattern):
            raw = await self.redis.client.get(key)
            if raw is None:
                continue
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                entries[key] = None
                continue
            entries[key] = data if isinstance(data, dict) else None
        return entries

    async def clear_expired(self) -> int:
        """
        Delete all expired or unreadable cache entries.

        Returns:
            Number of entries removed
        """
        if not await self.redis.ensure_connected():
            return 0

        try:
            now = self._clock()
            entries = await self._load_metadata()
            keys_to_remove = [
                key
                for key, data in entries.items()
                if data is None or data.get("expires_at", 0) < now
            ]

            if keys_to_remove:
                await self.redis.client.delete(*keys_to_remove)
                logger.info(
                    f"[SUBTITLE-CACHE] Cleared {len(keys_to_remove)} expired entries"
                )
            return len(keys_to_remove)

        except RedisError as e:
            logger.error(f"[SUBTITLE-CACHE] Clear error: {e}")
            return 0

    async def _cleanup_old_entries(self) -> int:
        """Evict least recently accessed entries beyond the entry ceiling."""
        try:
            entries = await self._load_metadata()
            ranked = [
                (data["last_accessed"], key)
                for key, data in entries.items()
                if data and data.get("last_accessed") is not None
            ]

            if len(ranked) <= self.max_entries:
                return 0

            ranked.sort()
            to_remove = [key for _, key in ranked[: len(ranked) - self.max_entries]]
            await self.redis.client.delete(*to_remove)
            logger.info(f"[SUBTITLE-CACHE] Cleaned up {len(to_remove)} old entries")
            return len(to_remove)

        except RedisError as e:
            logger.error(f"[SUBTITLE-CACHE] Cleanup error: {e}")
            return 0

    async def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with entry count and stored size
        """
        if not await self.redis.ensure_connected():
            return {"entries": 0, "size_bytes": 0, "size_mb": "0.00"}

        try:
            total_entries = 0
            total_size = 0
            async for key in self.redis.client.scan_iter(match=self._match_pattern):
                raw = await self.redis.client.get(key)
                if raw:
                    total_entries += 1
                    total_size += len(raw.encode("utf-8"))

            return {
                "entries": total_entries,
                "size_bytes": total_size,
                "size_mb": f"{total_size / (1024 * 1024):.2f}",
            }
        except RedisError as e:
            logger.error(f"[SUBTITLE-CACHE] Stats error: {e}")
            return {"entries": 0, "size_bytes": 0, "size_mb": "0.00"}
