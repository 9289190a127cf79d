"""Tests for the playback sync controller."""

import asyncio

import pytest

from translator.subtitle_sync import SubtitleSync, SyncState
from translator.translation_queue import TranslationQueue


class ChangeRecorder:
    def __init__(self):
        self.changes = []

    def __call__(self, cue):
        self.changes.append(cue)

    @property
    def indices(self):
        return [cue.index if cue is not None else None for cue in self.changes]


@pytest.fixture
def recorder():
    return ChangeRecorder()


@pytest.mark.unit
@pytest.mark.asyncio
class TestSubtitleSyncWithCueList:
    """Sync controller backed by a plain cue list."""

    async def test_start_samples_immediately(self, fake_player, recorder, cue_factory):
        fake_player.current_time = 1.0
        sync = SubtitleSync(fake_player, cue_factory(5), recorder, interval=60)

        sync.start()
        try:
            assert sync.state == SyncState.RUNNING
            assert recorder.indices == [0]
        finally:
            sync.stop()

    async def test_unchanged_cue_is_not_reported_twice(
        self, fake_player, recorder, cue_factory
    ):
        sync = SubtitleSync(fake_player, cue_factory(5), recorder, interval=60)
        sync.start()

        fake_player.current_time = 0.5
        sync.update()
        fake_player.current_time = 1.5
        sync.update()
        sync.stop()

        assert recorder.indices == [0, None]

    async def test_reports_gap_as_none(self, fake_player, recorder, cue_factory):
        cues = cue_factory(3, duration=1.0, gap=1.0)
        sync = SubtitleSync(fake_player, cues, recorder, interval=60)
        sync.start()

        fake_player.current_time = 1.5
        sync.update()
        fake_player.current_time = 2.0
        sync.update()
        sync.stop()

        assert recorder.indices == [0, None, 1, None]

    async def test_seek_event_triggers_sample(self, fake_player, recorder, cue_factory):
        sync = SubtitleSync(fake_player, cue_factory(10), recorder, interval=60)
        sync.start()

        fake_player.seek(9.0)

        assert recorder.indices == [0, 4]
        sync.stop()

    async def test_polling_picks_up_playback_progress(
        self, fake_player, recorder, cue_factory
    ):
        sync = SubtitleSync(fake_player, cue_factory(10), recorder, interval=0.01)
        sync.start()

        fake_player.current_time = 6.5
        await asyncio.sleep(0.05)
        sync.stop()

        assert 3 in recorder.indices

    async def test_stop_clears_subtitle_and_listeners(
        self, fake_player, recorder, cue_factory
    ):
        sync = SubtitleSync(fake_player, cue_factory(5), recorder, interval=60)
        sync.start()

        sync.stop()

        assert sync.state == SyncState.STOPPED
        assert sync.current_subtitle is None
        assert recorder.changes[-1] is None
        assert fake_player.seek_listeners == []

    async def test_start_twice_registers_one_listener(
        self, fake_player, recorder, cue_factory
    ):
        sync = SubtitleSync(fake_player, cue_factory(5), recorder, interval=60)

        sync.start()
        sync.start()

        assert len(fake_player.seek_listeners) == 1
        sync.stop()

    async def test_set_subtitles_swaps_list_and_resamples(
        self, fake_player, recorder, cue_factory
    ):
        sync = SubtitleSync(fake_player, [], recorder, interval=60)
        sync.start()
        fake_player.current_time = 4.5

        sync.set_subtitles(cue_factory(5))

        assert recorder.indices == [2]
        sync.stop()

    async def test_missing_player_is_ignored(self, recorder, cue_factory):
        sync = SubtitleSync(None, cue_factory(5), recorder, interval=60)

        sync.start()
        sync.stop()

        assert recorder.changes == [None]


@pytest.mark.unit
@pytest.mark.asyncio
class TestSubtitleSyncWithQueue:
    """Sync controller driving a translation scheduler."""

    async def test_sampling_requests_preload(
        self, fake_player, recorder, fake_translator, cue_factory
    ):
        queue = TranslationQueue(
            fake_translator, batch_size=10, preload_window=20.0, debounce_seconds=10.0
        )
        await queue.initialize(cue_factory(100), initial_count=0)
        fake_player.current_time = 50.0
        sync = SubtitleSync(fake_player, queue, recorder, interval=60)

        sync.start()
        await queue.wait_for_background()
        sync.stop()

        assert 25 in queue.translated_indices

    async def test_translation_arrival_is_reported_as_change(
        self, fake_player, recorder, fake_translator, cue_factory
    ):
        queue = TranslationQueue(fake_translator, batch_size=10, preload_window=20.0)
        await queue.initialize(cue_factory(20), initial_count=0)
        fake_player.current_time = 0.0
        sync = SubtitleSync(fake_player, queue, recorder, interval=60)

        sync.start()
        assert recorder.changes[0].translation is None
        await queue.wait_for_background()
        sync.update()
        sync.stop()

        assert recorder.indices[:2] == [0, 0]
        assert recorder.changes[1].translation == "ZH:Line 0"
