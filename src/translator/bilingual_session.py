"""Per-player bilingual subtitle session.

Owns everything attached to one player and video: the scheduler, the sync
controller and the background translation task. Created alongside the player
and closed with it.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from common.config import settings
from common.schemas import TranslationProgress
from common.subtitle_cache import SubtitleCache
from common.subtitle_parser import Cue, parse_vtt
from translator.subtitle_sync import PlaybackSource, SubtitleChangeCallback, SubtitleSync
from translator.translation_client import TranslationClient
from translator.translation_queue import ProgressCallback, TranslationQueue

logger = logging.getLogger(__name__)


class BilingualSession:
    """Bilingual subtitle state for a single player/video pair."""

    def __init__(
        self,
        video_id: str,
        player: PlaybackSource,
        client: TranslationClient,
        cache: SubtitleCache,
        on_subtitle_change: SubtitleChangeCallback,
        on_progress: Optional[ProgressCallback] = None,
        target_lang: Optional[str] = None,
        queue_factory: Callable[..., TranslationQueue] = TranslationQueue,
    ):
        """
        Initialize the session.

        Args:
            video_id: Video identifier used as the persistent cache key
            player: Playback source to sync against
            client: Client used to fetch captions and translate batches
            cache: Persistent subtitle cache
            on_subtitle_change: Called with the active cue (or None)
            on_progress: Called with (translated, total) as batches land
            target_lang: Target language code, defaults to settings
            queue_factory: Builds the scheduler (overridable in tests)
        """
        self.video_id = video_id
        self.player = player
        self.client = client
        self.cache = cache
        self.on_subtitle_change = on_subtitle_change
        self.on_progress = on_progress
        self.target_lang = target_lang or settings.translation_target_language
        self._queue_factory = queue_factory

        self.queue: Optional[TranslationQueue] = None
        self.sync: Optional[SubtitleSync] = None
        self._background_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def is_loaded(self) -> bool:
        return self.queue is not None and self.queue.is_initialized

    @property
    def progress(self) -> TranslationProgress:
        if self.queue is None:
            return TranslationProgress()
        return self.queue.get_progress()

    @property
    def background_task(self) -> Optional[asyncio.Task]:
        return self._background_task

    async def _load_cues(self, caption_url: str) -> List[Cue]:
        cached = await self.cache.get(self.video_id, self.target_lang)
        if cached:
            logger.info(
                f"Using cached translations for {self.video_id} ({len(cached)} cues)"
            )
            return cached

        document = await self.client.fetch_document(caption_url)
        return parse_vtt(document)

    async def load(self, caption_url: str) -> bool:
        """
        Load captions, translate the opening cues and start syncing.

        Args:
            caption_url: URL of the WebVTT caption document

        Returns:
            False if the document has no usable cues, True otherwise

        Raises:
            TranslationClientError: If the caption document cannot be fetched
        """
        if self._closed:
            return False

        cues = await self._load_cues(caption_url)
        if not cues:
            logger.warning(f"⚠️ No captions found for {self.video_id}")
            return False

        self.queue = self._queue_factory(
            self.client.translate_batch,
            target_lang=self.target_lang,
            on_progress=self.on_progress,
        )
        await self.queue.initialize(cues)
        if self._closed:
            return False

        self.sync = SubtitleSync(self.player, self.queue, self.on_subtitle_change)
        self.sync.start()

        self._background_task = asyncio.create_task(
            self._translate_remaining_and_cache(),
            name=f"translate-remaining-{self.video_id}",
        )
        self._background_task.add_done_callback(self._on_background_done)

        logger.info(f"✅ Bilingual subtitles loaded for {self.video_id}")
        return True

    async def _translate_remaining_and_cache(self) -> None:
        await self.queue.translate_remaining()
        if self.queue.is_destroyed:
            return
        await self.cache.set(
            self.video_id, self.target_lang, self.queue.get_all_subtitles()
        )

    def _on_background_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"❌ Background translation failed for {self.video_id}: {error}"
            )

    async def close(self) -> None:
        """Stop syncing, persist progress and release the scheduler."""
        if self._closed:
            return
        self._closed = True

        if self.sync is not None:
            self.sync.stop()

        if self.queue is not None and self.queue.is_initialized:
            await self.cache.set(
                self.video_id, self.target_lang, self.queue.get_all_subtitles()
            )

        if self.queue is not None:
            self.queue.destroy()

        if self._background_task is not None and not self._background_task.done():
            self._background_task.cancel()
            try:
                await self._background_task
            except asyncio.CancelledError:
                pass

        logger.info(f"Bilingual session closed for {self.video_id}")
