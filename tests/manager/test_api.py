"""Tests for the translation API endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from manager.main import app
from manager.translation_engine import TranslationError


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def mock_engine():
    """Patch the active translation engine with a prefixing fake."""
    engine = MagicMock()
    engine.name = "fake"
    engine.translate = AsyncMock(side_effect=lambda text, lang: f"{lang}:{text}")
    engine.translate_batch = AsyncMock(
        side_effect=lambda texts, lang: [f"{lang}:{text}" for text in texts]
    )
    engine.cache.get_stats.return_value = {"size": 3, "max_size": 2000}
    with patch("manager.main.translation_engine", engine):
        yield engine


@pytest.mark.unit
class TestHealthEndpoint:
    """Test health check endpoint."""

    def test_health_reports_backend(self, client):
        with patch("manager.main.settings") as mock_settings:
            mock_settings.translation_backend = "google"

            response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "backend": "google"}


@pytest.mark.unit
class TestBatchTranslateEndpoint:
    """Test POST /api/translate/batch."""

    def test_translates_in_order(self, client, mock_engine):
        response = client.post(
            "/api/translate/batch",
            json={"texts": ["Hello", "Goodbye"], "targetLang": "ja"},
        )

        assert response.status_code == 200
        assert response.json() == {"translations": ["ja:Hello", "ja:Goodbye"]}
        mock_engine.translate_batch.assert_awaited_once_with(["Hello", "Goodbye"], "ja")

    def test_target_language_defaults_to_setting(self, client, mock_engine):
        response = client.post("/api/translate/batch", json={"texts": ["Hello"]})

        assert response.status_code == 200
        assert response.json()["translations"] == ["zh-TW:Hello"]

    def test_empty_batch_skips_engine(self, client, mock_engine):
        response = client.post("/api/translate/batch", json={"texts": []})

        assert response.status_code == 200
        assert response.json() == {"translations": []}
        mock_engine.translate_batch.assert_not_called()

    @pytest.mark.parametrize(
        "count,expected_status",
        [
            (100, 200),
            (101, 400),
        ],
    )
    def test_batch_size_limit(self, client, mock_engine, count, expected_status):
        response = client.post(
            "/api/translate/batch", json={"texts": [f"t{i}" for i in range(count)]}
        )

        assert response.status_code == expected_status
        if expected_status == 400:
            assert response.json()["detail"] == "Max 100 texts per batch"

    def test_missing_texts_is_rejected(self, client, mock_engine):
        response = client.post("/api/translate/batch", json={"targetLang": "ja"})

        assert response.status_code == 422

    def test_engine_failure_returns_500(self, client, mock_engine):
        mock_engine.translate_batch.side_effect = TranslationError("backend down")

        response = client.post("/api/translate/batch", json={"texts": ["Hello"]})

        assert response.status_code == 500
        assert response.json()["detail"] == "backend down"


@pytest.mark.unit
class TestTranslateEndpoint:
    """Test POST /api/translate."""

    def test_translates_single_text(self, client, mock_engine):
        response = client.post(
            "/api/translate", json={"text": "Hello", "targetLang": "zh-TW"}
        )

        assert response.status_code == 200
        assert response.json() == {"translation": "zh-TW:Hello"}

    @pytest.mark.parametrize("text", ["", "   "])
    def test_blank_text_is_rejected(self, client, mock_engine, text):
        response = client.post("/api/translate", json={"text": text})

        assert response.status_code == 422
        mock_engine.translate.assert_not_called()

    def test_engine_failure_returns_500(self, client, mock_engine):
        mock_engine.translate.side_effect = RuntimeError("quota exceeded")

        response = client.post("/api/translate", json={"text": "Hello"})

        assert response.status_code == 500
        assert response.json()["detail"] == "quota exceeded"


@pytest.mark.unit
class TestStatsEndpoint:
    def test_returns_cache_stats(self, client, mock_engine):
        response = client.get("/api/translate/stats")

        assert response.status_code == 200
        assert response.json() == {"size": 3, "max_size": 2000}
