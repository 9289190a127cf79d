"""Async HTTP client for caption documents and the batch translation API."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from common.config import settings
from common.retry_utils import RetryPolicy, retry_with_exponential_backoff

logger = logging.getLogger(__name__)

BATCH_TRANSLATE_PATH = "/api/translate/batch"


class TranslationClientError(Exception):
    """Raised when a document fetch or translation request fails for good."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TranslationClient:
    """
    HTTP client used by the scheduler and session.

    Transient failures (transport errors, 408, 429, 5xx) are retried with
    exponential backoff; anything else fails immediately.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Translation API base URL, defaults to settings
            timeout: Request timeout in seconds
            max_retries: Retries after the first attempt for transient failures
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url or settings.translation_api_url
        self.timeout = timeout or settings.translation_api_timeout
        self.max_retries = (
            settings.translation_api_max_retries if max_retries is None else max_retries
        )
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
            follow_redirects=True,
        )

    @property
    def _retry_decorator(self):
        return retry_with_exponential_backoff(
            policy=RetryPolicy.from_settings(max_retries=self.max_retries)
        )

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        response = await self._client.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._retry_decorator(self._send)(method, url, **kwargs)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise TranslationClientError(
                f"{method} {url} failed with HTTP {status}", status_code=status
            ) from e
        except httpx.HTTPError as e:
            raise TranslationClientError(f"{method} {url} failed: {e}") from e

    async def fetch_document(self, url: str) -> str:
        """
        Download a caption document.

        Args:
            url: Absolute URL, or a path relative to the API base URL

        Returns:
            Document body as text

        Raises:
            TranslationClientError: If the request fails after retries
        """
        response = await self._request("GET", url)
        logger.debug(f"Fetched caption document {url} ({len(response.text)} chars)")
        return response.text

    async def translate_batch(self, texts: List[str], target_lang: str) -> List[str]:
        """
        Translate a batch of texts through the translation API.

        Args:
            texts: Texts to translate
            target_lang: Target language code

        Returns:
            Translations aligned by index with ``texts``

        Raises:
            TranslationClientError: If the request fails after retries
        """
        if not texts:
            return []

        response = await self._request(
            "POST",
            BATCH_TRANSLATE_PATH,
            json={"texts": texts, "targetLang": target_lang},
        )

        try:
            payload: Dict[str, Any] = response.json()
        except ValueError as e:
            raise TranslationClientError(f"Invalid JSON from translation API: {e}") from e

        translations = payload.get("translations")
        if not isinstance(translations, list):
            raise TranslationClientError("Translation API response has no translations")

        if len(translations) != len(texts):
            logger.warning(
                f"⚠️ Translation count mismatch: expected {len(texts)}, "
                f"got {len(translations)}"
            )
            translations = (translations + [""] * len(texts))[: len(texts)]

        return [str(t) if t is not None else "" for t in translations]

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "TranslationClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
