"""Progressive translation scheduler for bilingual subtitles.

Translates a cue list in fixed-size batches through a bounded pool of
asyncio workers. The first cues are translated up front so playback can start
with bilingual text, cues ahead of the playback position are preloaded on
demand, and the remainder is drained in the background.
"""

import asyncio
import logging
from collections import deque
from dataclasses import replace
from typing import (
    Any,
    Awaitable,
    Callable,
    Coroutine,
    Deque,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
)

from common.config import settings
from common.schemas import TranslationProgress
from common.subtitle_parser import Cue, find_subtitle_at_time

logger = logging.getLogger(__name__)

TranslateBatchFn = Callable[[List[str], str], Awaitable[List[str]]]
UpdateCallback = Callable[[List[Cue]], None]
ProgressCallback = Callable[[int, int], None]


class EmptySubtitlesError(ValueError):
    """Raised when a scheduler is initialized without any cues."""

    def __init__(self):
        super().__init__("No subtitles provided")


class TranslationQueue:
    """
    Bounded-concurrency translation scheduler for one cue list.

    Every cue index is in exactly one state: untranslated, pending (covered by
    an in-flight batch) or translated. After ``destroy()`` no method mutates
    state or issues requests; batches already in flight finish and their
    results are discarded.
    """

    def __init__(
        self,
        translate_batch: TranslateBatchFn,
        target_lang: Optional[str] = None,
        concurrency: Optional[int] = None,
        batch_size: Optional[int] = None,
        preload_window: Optional[float] = None,
        debounce_seconds: Optional[float] = None,
        on_update: Optional[UpdateCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            translate_batch: Async callable mapping (texts, target_lang) to
                index-aligned translations
            target_lang: Target language code
            concurrency: Number of concurrent batch requests
            batch_size: Number of cue texts per request
            preload_window: Seconds ahead of playback to preload
            debounce_seconds: Width of the preload debounce bucket
            on_update: Called with the full cue list after each written batch
            on_progress: Called with (translated, total) after each written batch
        """
        self._translate_batch = translate_batch
        self.target_lang = target_lang or settings.translation_target_language
        self.concurrency = concurrency or settings.translation_concurrency
        self.batch_size = batch_size or settings.translation_batch_size
        self.preload_window = (
            preload_window or settings.translation_preload_window_seconds
        )
        self.debounce_seconds = (
            debounce_seconds or settings.translation_preload_debounce_seconds
        )
        self.on_update = on_update
        self.on_progress = on_progress

        self._subtitles: List[Cue] = []
        self._translated: Set[int] = set()
        self._pending: Set[int] = set()
        self._initialized = False
        self._destroyed = False
        self._active_requests = 0
        self._last_preload_bucket: Optional[int] = None
        self._background_tasks: Set[asyncio.Task] = set()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    def active_requests(self) -> int:
        return self._active_requests

    @property
    def translated_indices(self) -> FrozenSet[int]:
        return frozenset(self._translated)

    @property
    def pending_indices(self) -> FrozenSet[int]:
        return frozenset(self._pending)

    async def initialize(
        self, cues: Sequence[Cue], initial_count: Optional[int] = None
    ) -> None:
        """
        Store the cue list and translate the first ``initial_count`` cues.

        Cues that already carry a translation (e.g. restored from the
        persistent cache) count as translated.

        Args:
            cues: Parsed cues in playback order
            initial_count: Number of leading cues to translate before returning

        Raises:
            EmptySubtitlesError: If ``cues`` is empty
        """
        if not cues:
            raise EmptySubtitlesError()
        if self._destroyed:
            return

        if initial_count is None:
            initial_count = settings.translation_initial_count

        self._subtitles = [replace(cue, index=idx) for idx, cue in enumerate(cues)]
        self._pending.clear()
        self._translated = {cue.index for cue in self._subtitles if cue.translation}
        self._last_preload_bucket = None

        logger.info(
            f"[QUEUE] Initializing with {len(self._subtitles)} subtitles, "
            f"translating first {initial_count}"
        )

        await self._translate_range(0, min(initial_count, len(self._subtitles)))

        if self._destroyed:
            return
        self._initialized = True
        logger.info(
            f"[QUEUE] Initialization complete: "
            f"{len(self._translated)}/{len(self._subtitles)} translated"
        )

    def _is_untranslated(self, index: int) -> bool:
        return index not in self._translated and index not in self._pending

    def _make_batches(self, indices: Iterable[int]) -> List[List[int]]:
        todo = [idx for idx in indices if self._is_untranslated(idx)]
        return [
            todo[i : i + self.batch_size] for i in range(0, len(todo), self.batch_size)
        ]

    async def _translate_range(self, start_idx: int, end_idx: int) -> None:
        """
        Translate every untranslated cue in [start_idx, end_idx).

        Args:
            start_idx: First index of the range
            end_idx: Index one past the end of the range
        """
        if self._destroyed:
            return

        end_idx = min(end_idx, len(self._subtitles))
        batches = self._make_batches(range(max(start_idx, 0), end_idx))
        if not batches:
            return

        # Claim the whole range before any await so overlapping passes skip it
        for batch in batches:
            self._pending.update(batch)

        queue: Deque[List[int]] = deque(batches)
        worker_count = min(self.concurrency, len(batches))

        async def worker() -> None:
            while queue and not self._destroyed:
                batch = queue.popleft()
                self._active_requests += 1
                try:
                    await self._process_batch(batch)
                finally:
                    self._active_requests -= 1

        await asyncio.gather(*(worker() for _ in range(worker_count)))

    async def _process_batch(self, batch: List[int]) -> None:
        """Translate one batch and write the results to their cue slots."""
        if self._destroyed:
            return

        texts = [self._subtitles[idx].text for idx in batch]

        try:
            translations = await self._translate_batch(texts, self.target_lang)
        except Exception as e:
            logger.error(
                f"[QUEUE] Batch translation failed for cues {batch[0]}-{batch[-1]}: {e}"
            )
            if not self._destroyed:
                self._pending.difference_update(batch)
            return

        if self._destroyed:
            logger.debug(f"[QUEUE] Discarding batch {batch[0]}-{batch[-1]} after destroy")
            return

        for position, idx in enumerate(batch):
            cue = self._subtitles[idx]
            translation = (
                translations[position] if position < len(translations) else None
            )
            self._subtitles[idx] = replace(cue, translation=translation or cue.text)
            self._pending.discard(idx)
            self._translated.add(idx)

        self._notify()

    def _notify(self) -> None:
        translated, total = len(self._translated), len(self._subtitles)
        if self.on_update:
            try:
                self.on_update(self._subtitles)
            except Exception:
                logger.exception("[QUEUE] on_update callback failed")
        if self.on_progress:
            try:
                self.on_progress(translated, total)
            except Exception:
                logger.exception("[QUEUE] on_progress callback failed")

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"[QUEUE] Background task {task.get_name()} failed: {error}")

    def preload_for_time(self, current_time: float) -> Optional[asyncio.Task]:
        """
        Preload translations for the window ahead of the playback position.

        Calls within the same debounce bucket are ignored. Must be called from
        a running event loop; the translation pass runs as a background task.

        Args:
            current_time: Current playback time in seconds

        Returns:
            The dispatched background task, or None if nothing was scheduled
        """
        if not self._initialized or self._destroyed:
            return None

        bucket = int(current_time // self.debounce_seconds)
        if bucket == self._last_preload_bucket:
            return None
        self._last_preload_bucket = bucket

        window_end = current_time + self.preload_window
        start_idx = next(
            (cue.index for cue in self._subtitles if cue.start >= current_time), None
        )
        if start_idx is None:
            return None

        end_idx = next(
            (cue.index for cue in self._subtitles if cue.start > window_end),
            len(self._subtitles),
        )

        if not any(self._is_untranslated(idx) for idx in range(start_idx, end_idx)):
            return None

        logger.info(
            f"[QUEUE] Preloading subtitles {start_idx}-{end_idx} "
            f"for time {current_time:.1f}s"
        )
        return self._spawn(
            self._translate_range(start_idx, end_idx),
            name=f"preload-{start_idx}-{end_idx}",
        )

    def get_subtitle_at(self, current_time: float) -> Optional[Cue]:
        return find_subtitle_at_time(self._subtitles, current_time)

    def get_all_subtitles(self) -> List[Cue]:
        return self._subtitles

    def get_progress(self) -> TranslationProgress:
        return TranslationProgress.from_counts(
            len(self._translated), len(self._subtitles)
        )

    async def translate_remaining(
        self, chunk_size: Optional[int] = None, delay: Optional[float] = None
    ) -> None:
        """
        Translate every remaining cue in paced chunks.

        Args:
            chunk_size: Untranslated cues per chunk
            delay: Seconds to wait between chunks
        """
        if not self._initialized or self._destroyed:
            return

        chunk_size = chunk_size or settings.translation_remaining_chunk_size
        if delay is None:
            delay = settings.translation_remaining_chunk_delay

        untranslated = [
            idx for idx in range(len(self._subtitles)) if idx not in self._translated
        ]
        if not untranslated:
            logger.info("[QUEUE] All subtitles already translated")
            return

        logger.info(
            f"[QUEUE] Translating remaining {len(untranslated)} subtitles in background"
        )

        for i in range(0, len(untranslated), chunk_size):
            if self._destroyed:
                break

            chunk = untranslated[i : i + chunk_size]
            await self._translate_range(chunk[0], chunk[-1] + 1)

            if i + chunk_size < len(untranslated) and delay > 0:
                await asyncio.sleep(delay)

        if not self._destroyed:
            logger.info(
                f"[QUEUE] Background translation complete: "
                f"{len(self._translated)}/{len(self._subtitles)}"
            )

    def is_complete(self) -> bool:
        return len(self._translated) == len(self._subtitles)

    async def wait_for_background(self) -> None:
        """Wait for every dispatched preload pass to finish."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    def destroy(self) -> None:
        """Stop all work. In-flight results are discarded; later calls are no-ops."""
        if self._destroyed:
            return
        self._destroyed = True
        self._initialized = False
        self._subtitles = []
        self._translated.clear()
        self._pending.clear()
        logger.info("[QUEUE] Destroyed")
