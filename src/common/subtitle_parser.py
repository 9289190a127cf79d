"""WebVTT subtitle parser and formatter for bilingual subtitle workflows."""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)

VTT_SIGNATURE = "WEBVTT"
TIME_RANGE_SEPARATOR = "-->"


@dataclass(frozen=True)
class Cue:
    """A single timed subtitle fragment.

    ``index`` is the 0-based position in the parsed sequence and never changes.
    ``translation`` is None until the cue has been translated.
    """

    index: int
    text: str
    start: float
    end: float
    translation: Optional[str] = None

    @property
    def is_translated(self) -> bool:
        return bool(self.translation)

    def contains(self, current_time: float) -> bool:
        """Half-open interval check: start <= t < end."""
        return self.start <= current_time < self.end


class VTTParser:
    """Parser for WebVTT subtitle files."""

    # [hh:]mm:ss.mmm --> [hh:]mm:ss.mmm, hours optional on either side
    TIMESTAMP_PATTERN = re.compile(
        r"(?:(\d{2,}):)?(\d{2}):(\d{2})\.(\d{3})\s*-->\s*(?:(\d{2,}):)?(\d{2}):(\d{2})\.(\d{3})"
    )
    CUE_SETTING_PATTERN = re.compile(r"^(position|align|line|size):")
    TAG_PATTERN = re.compile(r"<[^>]+>")

    @staticmethod
    def _to_seconds(hours: Optional[str], minutes: str, seconds: str, millis: str) -> float:
        return (
            (int(hours) if hours else 0) * 3600
            + int(minutes) * 60
            + int(seconds)
            + int(millis) / 1000
        )

    @staticmethod
    def _clean_text_line(line: str) -> str:
        return VTTParser.TAG_PATTERN.sub("", line).strip()

    @staticmethod
    def parse(content: str) -> List[Cue]:
        """
        Parse WebVTT content into cues.

        Malformed time ranges and cues without text are skipped. A document
        without the WEBVTT signature yields an empty list, which callers
        treat as "no captions".

        Args:
            content: Raw WebVTT file content

        Returns:
            List of Cue objects in document order, indexed from 0
        """
        if not content:
            return []

        # Remove BOM (Byte Order Mark) if present
        if content.startswith("\ufeff"):
            content = content[1:]

        if VTT_SIGNATURE not in content:
            logger.debug("Content has no WEBVTT signature, no cues parsed")
            return []

        cues: List[Cue] = []
        lines = content.split("\n")
        i = 0

        # Skip header and any metadata blocks before the first cue
        while i < len(lines) and TIME_RANGE_SEPARATOR not in lines[i]:
            i += 1

        while i < len(lines):
            line = lines[i].strip()

            if TIME_RANGE_SEPARATOR not in line:
                i += 1
                continue

            match = VTTParser.TIMESTAMP_PATTERN.search(line)
            i += 1
            if not match:
                logger.debug(f"Skipping malformed time range: {line}")
                continue

            start = VTTParser._to_seconds(*match.group(1, 2, 3, 4))
            end = VTTParser._to_seconds(*match.group(5, 6, 7, 8))

            # Body runs until a blank line or the next time range
            text_lines = []
            while (
                i < len(lines)
                and lines[i].strip()
                and TIME_RANGE_SEPARATOR not in lines[i]
            ):
                text_line = lines[i].strip()
                if not VTTParser.CUE_SETTING_PATTERN.match(text_line):
                    cleaned = VTTParser._clean_text_line(text_line)
                    if cleaned:
                        text_lines.append(cleaned)
                i += 1

            if end <= start:
                logger.debug(f"Skipping cue with non-positive duration: {line}")
                continue

            text = " ".join(text_lines)
            if text:
                cues.append(
                    Cue(index=len(cues), text=text, start=start, end=end)
                )

        logger.info(f"Parsed {len(cues)} subtitle cues")
        return cues

    @staticmethod
    def format_timestamp(seconds: float) -> str:
        """
        Format seconds as a WebVTT timestamp.

        Example:
            >>> VTTParser.format_timestamp(3723.5)
            '01:02:03.500'
        """
        total_ms = int(round(seconds * 1000))
        hours, remainder = divmod(total_ms, 3600 * 1000)
        minutes, remainder = divmod(remainder, 60 * 1000)
        secs, millis = divmod(remainder, 1000)
        return f"{hours:02d}:{minutes:02d}:{secs:02d}.{millis:03d}"

    @staticmethod
    def format(cues: Sequence[Cue], bilingual: bool = False) -> str:
        """
        Format cues back to WebVTT.

        Args:
            cues: Cues to serialize
            bilingual: When True, a translated cue gets its translation on a
                second line below the original text

        Returns:
            WebVTT document string
        """
        blocks = [VTT_SIGNATURE]
        for cue in cues:
            body = cue.text
            if bilingual and cue.translation:
                body = f"{cue.text}\n{cue.translation}"
            blocks.append(
                f"{VTTParser.format_timestamp(cue.start)} {TIME_RANGE_SEPARATOR} "
                f"{VTTParser.format_timestamp(cue.end)}\n{body}"
            )
        return "\n\n".join(blocks) + "\n"


def parse_vtt(content: str) -> List[Cue]:
    """Convenience wrapper around VTTParser.parse."""
    return VTTParser.parse(content)


def find_subtitle_at_time(
    cues: Sequence[Cue], current_time: float
) -> Optional[Cue]:
    """
    Find the cue active at the given playback time.

    Overlapping cues resolve to the first match in index order.

    Args:
        cues: Cue sequence to search
        current_time: Playback time in seconds

    Returns:
        The active Cue, or None if no cue covers the time
    """
    if not cues:
        return None
    return next((cue for cue in cues if cue.contains(current_time)), None)
