"""Request and response schemas for the translation API."""

from typing import List

from pydantic import BaseModel, Field, field_validator

from common.config import settings


class TranslateRequest(BaseModel):
    """Single-text translation request."""

    text: str = Field(..., description="Text to translate")
    target_lang: str = Field(
        default=settings.translation_target_language,
        alias="targetLang",
        description="Target language code",
    )

    @field_validator("text")
    @classmethod
    def validate_text_non_empty(cls, v: str) -> str:
        """
        Validate text is non-empty.

        Raises:
            ValueError: If text is empty or whitespace only
        """
        if not v or not v.strip():
            raise ValueError("Text is required")
        return v

    class Config:
        populate_by_name = True
        json_schema_extra = {"example": {"text": "Hello, world!", "targetLang": "zh-TW"}}


class TranslateResponse(BaseModel):
    translation: str


class BatchTranslateRequest(BaseModel):
    """Batch translation request used by the subtitle scheduler."""

    texts: List[str] = Field(..., description="Texts to translate, in order")
    target_lang: str = Field(
        default=settings.translation_target_language,
        alias="targetLang",
        description="Target language code",
    )

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {"texts": ["Hello", "How are you?"], "targetLang": "zh-TW"}
        }


class BatchTranslateResponse(BaseModel):
    translations: List[str] = Field(default_factory=list)


class TranslationCacheStats(BaseModel):
    size: int = Field(..., description="Entries currently cached")
    max_size: int = Field(..., description="Maximum number of cached entries")


class HealthResponse(BaseModel):
    status: str = Field(default="healthy")
    backend: str = Field(..., description="Active translation backend")
