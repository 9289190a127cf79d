"""Shared Pydantic schemas for the bilingual subtitle system."""

from typing import List

from pydantic import BaseModel, Field

from common.subtitle_parser import Cue
from common.utils import MathUtils

# Bump when the stored cue layout changes; older entries are discarded on read
SUBTITLE_CACHE_VERSION = 1


class SubtitleCacheEntry(BaseModel):
    """A fully (or nearly fully) translated cue list stored in the persistent cache."""

    version: int = Field(default=SUBTITLE_CACHE_VERSION)
    video_id: str = Field(..., description="Video identifier")
    lang: str = Field(..., description="Target language of the translations")
    subtitles: List[Cue] = Field(default_factory=list)
    created_at: float = Field(..., description="Creation time (epoch seconds)")
    last_accessed: float = Field(..., description="Last read time (epoch seconds)")
    expires_at: float = Field(..., description="Expiry time (epoch seconds)")

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def translated_count(self) -> int:
        return sum(1 for cue in self.subtitles if cue.translation)


class TranslationProgress(BaseModel):
    """Translation progress snapshot for a scheduler."""

    translated: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    percent: int = Field(default=0, ge=0, le=100)

    @classmethod
    def from_counts(cls, translated: int, total: int) -> "TranslationProgress":
        """
        Build a progress snapshot from raw counts.

        Args:
            translated: Number of translated cues
            total: Total number of cues

        Returns:
            TranslationProgress with percent rounded to the nearest integer
        """
        # Halves round up
        percent = int(MathUtils.calculate_percentage(translated, total) + 0.5)
        return cls(translated=translated, total=total, percent=percent)
