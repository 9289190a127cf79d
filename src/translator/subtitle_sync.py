"""Playback sync controller that keeps the displayed subtitle in step with the player."""

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional, Protocol, Sequence, Union

from common.config import settings
from common.subtitle_parser import Cue, find_subtitle_at_time
from translator.translation_queue import TranslationQueue

logger = logging.getLogger(__name__)

SubtitleChangeCallback = Callable[[Optional[Cue]], None]


class PlaybackSource(Protocol):
    """What the controller needs from the embedding player."""

    @property
    def current_time(self) -> float: ...

    def add_seek_listener(self, listener: Callable[[], None]) -> None: ...

    def remove_seek_listener(self, listener: Callable[[], None]) -> None: ...


class SyncState(Enum):
    """Sync controller state."""

    STOPPED = "stopped"
    RUNNING = "running"


class SubtitleSync:
    """
    Samples playback time and reports active-cue changes.

    Backed either by a TranslationQueue (which also gets preload requests) or
    by a plain cue list.

    Example:
        ```python
        sync = SubtitleSync(player, queue, on_subtitle_change=render)
        sync.start()
        ...
        sync.stop()
        ```
    """

    def __init__(
        self,
        player: Optional[PlaybackSource],
        source: Union[TranslationQueue, Sequence[Cue]],
        on_subtitle_change: SubtitleChangeCallback,
        interval: Optional[float] = None,
    ):
        """
        Initialize the controller.

        Args:
            player: Playback source providing current time and seek events
            source: TranslationQueue or cue list to look subtitles up in
            on_subtitle_change: Called with the new active cue (or None)
            interval: Polling interval in seconds, defaults to settings (100 ms)
        """
        self.player = player
        self._source = source
        self.on_subtitle_change = on_subtitle_change
        self.interval = interval or settings.subtitle_sync_interval_seconds
        self._state = SyncState.STOPPED
        self._current: Optional[Cue] = None
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SyncState.RUNNING

    @property
    def current_subtitle(self) -> Optional[Cue]:
        return self._current

    @property
    def _queue(self) -> Optional[TranslationQueue]:
        return self._source if isinstance(self._source, TranslationQueue) else None

    def _subtitles(self) -> Sequence[Cue]:
        queue = self._queue
        if queue is not None:
            return queue.get_all_subtitles()
        return self._source

    def update(self) -> None:
        """Sample the player once and report a changed active cue."""
        if self.player is None:
            return

        current_time = self.player.current_time

        queue = self._queue
        if queue is not None:
            queue.preload_for_time(current_time)

        subtitle = find_subtitle_at_time(self._subtitles(), current_time)

        if subtitle is not self._current:
            self._current = subtitle
            self.on_subtitle_change(subtitle)

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.update()
            except Exception:
                logger.exception("[SYNC] Subtitle sample failed")

    def start(self) -> None:
        """Start sampling. Must be called from a running event loop."""
        if self._state == SyncState.RUNNING:
            return

        self._state = SyncState.RUNNING
        self.update()
        self._poll_task = asyncio.get_running_loop().create_task(
            self._poll(), name="subtitle-sync"
        )
        if self.player is not None:
            self.player.add_seek_listener(self.update)
        logger.debug(f"[SYNC] Started (interval {self.interval * 1000:.0f}ms)")

    def stop(self) -> None:
        """Stop sampling and clear the displayed subtitle."""
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
        if self.player is not None:
            self.player.remove_seek_listener(self.update)
        self._state = SyncState.STOPPED
        self._current = None
        self.on_subtitle_change(None)
        logger.debug("[SYNC] Stopped")

    def set_subtitles(self, subtitles: List[Cue]) -> None:
        """Swap the cue list (plain-list mode only) and re-sample immediately."""
        if self._queue is None:
            self._source = subtitles
        self.update()
