"""
Purpose:
- Pydantic models for caption in/out so the API is self-documenting and stable.
- Wire names follow the browser client (camelCase); Python code uses snake_case.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..upload.encoder import is_data_url

class CaptionStyle(str, Enum):
    DEFAULT = "default"
    DESCRIPTIVE = "descriptive"
    FUNNY = "funny"
    FORMAL = "formal"
    POETIC = "poetic"
    SOCIAL = "social"


class CaptionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    photo_data: str = Field(..., alias="photoDataUri", description="data:<mime>;base64,<payload>")
    style: Optional[CaptionStyle] = None
    language: Optional[str] = Field(None, max_length=35, description="BCP-47 code, e.g. 'en' or 'pt-BR'")
    context: Optional[str] = Field(None, max_length=500, description="Free-text hint for the model")
    include_hashtags: Optional[bool] = Field(None, alias="includeHashtags")
    include_emoji: Optional[bool] = Field(None, alias="includeEmoji")

    @field_validator("photo_data")
    @classmethod
    def _must_be_data_url(cls, v: str) -> str:
        if not is_data_url(v):
            raise ValueError("photoDataUri must be a non-empty base64 data URL")
        return v

    @field_validator("language", "context", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        # absent and blank mean the same thing: let the model apply its defaults
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CaptionResult(BaseModel):
    caption: str = Field(..., min_length=1)


class CaptionResponse(BaseModel):
    caption: str
    hashtags: Optional[List[str]] = None
