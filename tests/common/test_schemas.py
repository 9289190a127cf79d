"""Tests for shared schemas."""

import pytest
from pydantic import ValidationError

from common.schemas import SUBTITLE_CACHE_VERSION, SubtitleCacheEntry, TranslationProgress
from common.subtitle_parser import Cue


@pytest.mark.unit
class TestTranslationProgress:
    """Test progress snapshot construction."""

    @pytest.mark.parametrize(
        "translated,total,percent",
        [
            (0, 0, 0),
            (0, 10, 0),
            (3, 3, 100),
            (1, 3, 33),
            (2, 3, 67),
            (50, 200, 25),
            (1, 8, 13),
            (3, 8, 38),
        ],
    )
    def test_from_counts_rounds_percent(self, translated, total, percent):
        progress = TranslationProgress.from_counts(translated, total)

        assert progress.translated == translated
        assert progress.total == total
        assert progress.percent == percent

    def test_rejects_negative_counts(self):
        with pytest.raises(ValidationError):
            TranslationProgress(translated=-1, total=3, percent=0)


@pytest.mark.unit
class TestSubtitleCacheEntry:
    """Test cache entry serialization and helpers."""

    @pytest.fixture
    def entry(self):
        return SubtitleCacheEntry(
            video_id="abc",
            lang="zh-TW",
            subtitles=[
                Cue(index=0, text="Hello", start=0.0, end=1.5, translation="你好"),
                Cue(index=1, text="Bye", start=1.5, end=3.0),
            ],
            created_at=100.0,
            last_accessed=100.0,
            expires_at=200.0,
        )

    def test_defaults_to_current_version(self, entry):
        assert entry.version == SUBTITLE_CACHE_VERSION

    def test_json_round_trip_preserves_cues(self, entry):
        restored = SubtitleCacheEntry.model_validate_json(entry.model_dump_json())

        assert restored == entry
        assert isinstance(restored.subtitles[0], Cue)
        assert restored.subtitles[1].translation is None

    def test_translated_count(self, entry):
        assert entry.translated_count() == 1

    @pytest.mark.parametrize("now,expired", [(150.0, False), (200.0, False), (200.1, True)])
    def test_is_expired(self, entry, now, expired):
        assert entry.is_expired(now) is expired

    def test_missing_required_fields_are_rejected(self):
        with pytest.raises(ValidationError):
            SubtitleCacheEntry.model_validate_json('{"video_id": "abc"}')
