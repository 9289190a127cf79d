"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path
from typing import Callable, List

import fakeredis.aioredis
import pytest
import pytest_asyncio

# Add src directory to Python path for imports
project_root = Path(__file__).parent.parent
src_path = project_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from common.redis_client import RedisClient
from common.subtitle_cache import SubtitleCache
from common.subtitle_parser import Cue


class FakePlayer:
    """Playback source whose time is set directly by the test."""

    def __init__(self, current_time: float = 0.0):
        self.current_time = current_time
        self.seek_listeners: List[Callable[[], None]] = []

    def add_seek_listener(self, listener: Callable[[], None]) -> None:
        self.seek_listeners.append(listener)

    def remove_seek_listener(self, listener: Callable[[], None]) -> None:
        if listener in self.seek_listeners:
            self.seek_listeners.remove(listener)

    def seek(self, position: float) -> None:
        self.current_time = position
        for listener in list(self.seek_listeners):
            listener()


class FakeTranslator:
    """Records batch calls and returns ``f"{prefix}{text}"`` translations."""

    def __init__(self, prefix: str = "ZH:"):
        self.prefix = prefix
        self.calls: List[List[str]] = []

    async def __call__(self, texts: List[str], target_lang: str) -> List[str]:
        self.calls.append(list(texts))
        return [f"{self.prefix}{text}" for text in texts]

    @property
    def translated_texts(self) -> List[str]:
        return [text for call in self.calls for text in call]


def make_cues(count: int, duration: float = 2.0, gap: float = 0.0) -> List[Cue]:
    """Build ``count`` back-to-back cues of ``duration`` seconds each."""
    step = duration + gap
    return [
        Cue(index=i, text=f"Line {i}", start=i * step, end=i * step + duration)
        for i in range(count)
    ]


@pytest_asyncio.fixture
async def fake_redis():
    """
    Fake Redis connection using fakeredis for realistic Redis behavior.

    Provides a real Redis-like interface without requiring a Redis server.
    """
    redis = fakeredis.aioredis.FakeRedis(decode_responses=True, encoding="utf-8")
    yield redis
    await redis.flushall()
    await redis.aclose()


@pytest_asyncio.fixture
async def fake_redis_client(fake_redis):
    """RedisClient wrapper backed by fakeredis."""
    client = RedisClient()
    # Replace the client's Redis connection with our fake one
    client.client = fake_redis
    client.connected = True
    yield client
    client.connected = False


@pytest_asyncio.fixture
async def subtitle_cache(fake_redis_client):
    """SubtitleCache using fakeredis and a 7 day TTL."""
    return SubtitleCache(
        client=fake_redis_client,
        ttl_seconds=7 * 24 * 60 * 60,
        max_entries=50,
        min_translated_ratio=0.9,
        key_prefix="test_cache:",
    )


@pytest.fixture
def fake_player():
    return FakePlayer()


@pytest.fixture
def fake_translator():
    return FakeTranslator()


@pytest.fixture
def sample_vtt():
    """Small WebVTT document with styling, settings and a malformed block."""
    return (
        "WEBVTT\n"
        "Kind: captions\n"
        "Language: en\n"
        "\n"
        "00:00:01.000 --> 00:00:03.500 align:start position:0%\n"
        "<c>Hello</c> <00:00:01.500><c>world</c>\n"
        "\n"
        "2\n"
        "00:00:04.000 --> 00:00:06.000\n"
        "Second line\n"
        "continues here\n"
        "\n"
        "00:00:07.000 --> 00:00:0X.000\n"
        "Broken timestamp\n"
        "\n"
        "01:02:03.004 --> 01:02:05.000\n"
        "Hour cue\n"
    )


@pytest.fixture
def cue_factory():
    return make_cues
