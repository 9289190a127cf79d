"""Server-side translation engines with an in-memory LRU translation cache."""

import asyncio
import json
import logging
import time
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from openai import AsyncOpenAI

from common.config import Settings, settings
from common.retry_utils import RetryPolicy, retry_with_exponential_backoff
from common.utils import StringUtils

logger = logging.getLogger(__name__)

CACHE_KEY_TEXT_LENGTH = 100


class TranslationError(Exception):
    """Raised when a translation backend returns an unusable response."""


class TranslationCache:
    """
    LRU cache of single-text translations with a per-entry TTL.

    Keys are ``f"{lang}:{text[:100]}"``; texts sharing a 100-character prefix
    share an entry.
    """

    def __init__(
        self,
        max_size: Optional[int] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_size = max_size or settings.translation_cache_max_size
        self.ttl_seconds = ttl_seconds or settings.translation_cache_ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()

    @staticmethod
    def make_key(text: str, target_lang: str) -> str:
        return f"{target_lang}:{text[:CACHE_KEY_TEXT_LENGTH]}"

    def get(self, text: str, target_lang: str) -> Optional[str]:
        key = self.make_key(text, target_lang)
        entry = self._entries.get(key)
        if entry is None:
            return None

        translation, expires_at = entry
        if self._clock() > expires_at:
            del self._entries[key]
            return None

        self._entries.move_to_end(key)
        return translation

    def set(self, text: str, target_lang: str, translation: str) -> None:
        key = self.make_key(text, target_lang)
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
        self._entries[key] = (translation, self._clock() + self.ttl_seconds)

    def clear(self) -> None:
        self._entries.clear()

    def get_stats(self) -> Dict[str, int]:
        return {"size": len(self._entries), "max_size": self.max_size}

    def __len__(self) -> int:
        return len(self._entries)


class TranslationEngine:
    """Base class for server translation backends."""

    name = "base"

    def __init__(self, cache: Optional[TranslationCache] = None):
        self.cache = cache if cache is not None else TranslationCache()

    async def translate(self, text: str, target_lang: str) -> str:
        results = await self.translate_batch([text], target_lang)
        return results[0] if results else ""

    async def translate_batch(self, texts: List[str], target_lang: str) -> List[str]:
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release backend resources."""

    @property
    def _retry_decorator(self):
        return retry_with_exponential_backoff(policy=RetryPolicy.from_settings())


class GoogleTranslator(TranslationEngine):
    """Free Google Translate (``client=gtx``) backend, one request per text."""

    name = "google"

    def __init__(
        self,
        cache: Optional[TranslationCache] = None,
        source_lang: Optional[str] = None,
        url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(cache)
        self.source_lang = source_lang or settings.translation_source_language
        self.url = url or settings.google_translate_url
        self._client = httpx.AsyncClient(
            timeout=settings.translation_api_timeout, transport=transport
        )

    async def _fetch(self, text: str, target_lang: str) -> Any:
        params = {
            "client": "gtx",
            "sl": self.source_lang,
            "tl": target_lang,
            "dt": "t",
            "strip": "1",
            "nonced": "1",
            "q": text,
        }
        response = await self._client.get(self.url, params=params)
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _extract_translation(payload: Any) -> str:
        """Join the translated chunk of every sentence segment."""
        if not isinstance(payload, list) or not payload:
            raise TranslationError("Unexpected Google Translate response shape")

        segments = payload[0] or []
        return "".join(
            segment[0]
            for segment in segments
            if isinstance(segment, list) and segment and segment[0]
        )

    async def translate(self, text: str, target_lang: str) -> str:
        clean_text = StringUtils.strip_zero_width(text)
        if not clean_text:
            return ""

        cached = self.cache.get(clean_text, target_lang)
        if cached is not None:
            logger.debug(
                f"[TRANSLATE] Cache HIT: \"{StringUtils.truncate_for_logging(clean_text)}\""
            )
            return cached

        payload = await self._retry_decorator(self._fetch)(clean_text, target_lang)
        translation = self._extract_translation(payload)

        self.cache.set(clean_text, target_lang, translation)
        logger.debug(
            f"[TRANSLATE] Translated: \"{StringUtils.truncate_for_logging(clean_text)}\" "
            f"=> \"{StringUtils.truncate_for_logging(translation)}\""
        )
        return translation

    async def translate_batch(self, texts: List[str], target_lang: str) -> List[str]:
        return list(
            await asyncio.gather(*(self.translate(text, target_lang) for text in texts))
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class OpenAITranslator(TranslationEngine):
    """Chat-completions backend translating a whole batch in one request."""

    name = "openai"

    def __init__(
        self,
        cache: Optional[TranslationCache] = None,
        client: Optional[AsyncOpenAI] = None,
        source_lang: Optional[str] = None,
    ):
        super().__init__(cache)
        self.source_lang = source_lang or settings.translation_source_language
        self.client = client
        if self.client is None:
            if not settings.openai_api_key:
                raise ValueError("OPENAI_API_KEY is required for the openai backend")
            # Retries are handled by retry_with_exponential_backoff
            self.client = AsyncOpenAI(
                api_key=settings.openai_api_key, timeout=60.0, max_retries=0
            )
        logger.info(f"Initialized OpenAI translator with model: {settings.openai_model}")

    def _build_messages(
        self, segments: List[Dict[str, Any]], target_lang: str
    ) -> List[Dict[str, str]]:
        payload = {"segments": segments, "source": self.source_lang, "target": target_lang}
        return [
            {
                "role": "system",
                "content": (
                    "You are a professional subtitle translator. "
                    f"Translate each segment from {self.source_lang} to {target_lang}.\n"
                    'Return ONLY a JSON array: [{"id": 1, "text": "translation"}, ...]\n'
                    "Keep translations concise and suitable for subtitle display. "
                    "Keep every id. No markdown fences or commentary."
                ),
            },
            {"role": "user", "content": json.dumps(payload, ensure_ascii=False)},
        ]

    @staticmethod
    def _parse_segments(content: str) -> Dict[int, str]:
        """Map segment id to translated text from a JSON array response."""
        cleaned = content.strip()
        if cleaned.startswith("```"):
            lines = cleaned.split("\n")[1:]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            cleaned = "\n".join(lines).strip()

        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise TranslationError(f"OpenAI returned invalid JSON: {e}") from e

        if isinstance(data, dict):
            data = data.get("segments") or data.get("translations") or []
        if not isinstance(data, list):
            raise TranslationError("OpenAI response is not a JSON array")

        result: Dict[int, str] = {}
        for item in data:
            if isinstance(item, dict) and "id" in item:
                try:
                    result[int(item["id"])] = str(item.get("text") or "")
                except (TypeError, ValueError):
                    continue
        return result

    async def _complete(self, messages: List[Dict[str, str]]) -> str:
        response = await self.client.chat.completions.create(
            model=settings.openai_model,
            messages=messages,
            temperature=settings.openai_temperature,
        )
        if not response.choices:
            raise TranslationError("OpenAI API returned no choices in response")
        content = response.choices[0].message.content
        if not content:
            raise TranslationError("OpenAI API returned empty content")
        return content

    async def translate_batch(self, texts: List[str], target_lang: str) -> List[str]:
        results: List[str] = [""] * len(texts)
        segments: List[Dict[str, Any]] = []

        for position, text in enumerate(texts):
            clean_text = StringUtils.strip_zero_width(text)
            if not clean_text:
                continue
            cached = self.cache.get(clean_text, target_lang)
            if cached is not None:
                results[position] = cached
            else:
                segments.append({"id": position + 1, "text": clean_text})

        if not segments:
            return results

        logger.info(f"Translating {len(segments)} segments to {target_lang} via OpenAI")
        content = await self._retry_decorator(self._complete)(
            self._build_messages(segments, target_lang)
        )
        translated = self._parse_segments(content)

        missing = 0
        for segment in segments:
            translation = translated.get(segment["id"], "")
            if not translation:
                missing += 1
                continue
            results[segment["id"] - 1] = translation
            self.cache.set(segment["text"], target_lang, translation)

        if missing:
            logger.warning(f"⚠️ OpenAI response missing {missing}/{len(segments)} segments")
        return results


def create_translation_engine(
    config: Optional[Settings] = None, cache: Optional[TranslationCache] = None
) -> TranslationEngine:
    """
    Build the translation engine selected by ``translation_backend``.

    Args:
        config: Settings to read the backend from, defaults to global settings
        cache: Shared translation cache

    Returns:
        Configured translation engine
    """
    config = config or settings
    if cache is None:
        cache = TranslationCache(
            max_size=config.translation_cache_max_size,
            ttl_seconds=config.translation_cache_ttl_seconds,
        )
    if config.translation_backend == "openai":
        return OpenAITranslator(cache=cache)
    return GoogleTranslator(cache=cache)
