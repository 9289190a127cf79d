"""FastAPI application serving the batch translation API."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from common.config import settings
from common.logging_config import setup_service_logging
from manager.schemas import (
    BatchTranslateRequest,
    BatchTranslateResponse,
    HealthResponse,
    TranslateRequest,
    TranslateResponse,
    TranslationCacheStats,
)
from manager.translation_engine import TranslationEngine, create_translation_engine

# Configure logging
logger = setup_service_logging("manager", enable_file_logging=True)

# Created on startup (or on first use when running without lifespan)
translation_engine: Optional[TranslationEngine] = None


def get_translation_engine() -> TranslationEngine:
    """Return the active translation engine, creating it if needed."""
    global translation_engine
    if translation_engine is None:
        translation_engine = create_translation_engine(settings)
        logger.info(f"Translation backend: {translation_engine.name}")
    return translation_engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    global translation_engine

    # Startup
    logger.info("Starting translation API...")
    get_translation_engine()
    logger.info("✅ API startup complete")

    yield

    # Shutdown
    if translation_engine is not None:
        await translation_engine.aclose()
        translation_engine = None
    logger.info("Translation API shut down")


# Create FastAPI application
app = FastAPI(
    title="Bilingual Subtitle Translation API",
    description="Batch translation API for progressive bilingual subtitles",
    version="1.0.0",
    lifespan=lifespan,
)

# Parse comma-separated origins from config
allowed_origins = (
    [origin.strip() for origin in settings.cors_allowed_origins.split(",")]
    if settings.cors_allowed_origins
    else ["http://localhost:3000"]  # Safe default for development
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.get("/health", response_model=HealthResponse)
async def health_check_endpoint():
    """Report service status and the configured backend."""
    return HealthResponse(backend=settings.translation_backend)


@app.post("/api/translate", response_model=TranslateResponse)
async def translate_text(request: TranslateRequest):
    """Translate a single text."""
    engine = get_translation_engine()
    try:
        translation = await engine.translate(request.text, request.target_lang)
    except Exception as e:
        logger.error(f"[TRANSLATE] {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)
        )
    return TranslateResponse(translation=translation)


@app.post("/api/translate/batch", response_model=BatchTranslateResponse)
async def translate_batch(request: BatchTranslateRequest):
    """
    Translate a batch of subtitle texts.

    Translations are returned in the same order as the input texts.
    """
    if not request.texts:
        return BatchTranslateResponse(translations=[])

    if len(request.texts) > settings.translation_batch_max_texts:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Max {settings.translation_batch_max_texts} texts per batch",
        )

    engine = get_translation_engine()
    try:
        translations = await engine.translate_batch(request.texts, request.target_lang)
    except Exception as e:
        logger.error(f"[TRANSLATE BATCH] {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)
        )
    return BatchTranslateResponse(translations=translations)


@app.get("/api/translate/stats", response_model=TranslationCacheStats)
async def translation_cache_stats():
    """Translation cache statistics."""
    return TranslationCacheStats(**get_translation_engine().cache.get_stats())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
