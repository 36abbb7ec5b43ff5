"""
Purpose:
- Centralized configuration using pydantic-settings.
- Reads from CAPTIONATOR_* environment variables and an optional .env file.
- Keeps model, storage and identity-provider knobs tunable without code changes.
"""

from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024
MAX_UPLOAD_BYTES = 10 * MIB

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CAPTIONATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API host/port
    host: str = Field(default="0.0.0.0", description="Bind address for FastAPI/Uvicorn")
    port: int = Field(default=8000, description="Port for FastAPI/Uvicorn")

    # CORS
    cors_allow_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:9002"],
        description="Allowed origins for browser apps"
    )

    # ---- Logging ----
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: str = Field(default="text", description='"text" | "json"')

    # ---- Upload gate ----
    max_upload_bytes: int = Field(default=MAX_UPLOAD_BYTES, description="Largest accepted image, inclusive")

    # ---- Gemini captioner config ----
    # GEMINI_API_KEY is also honoured so existing .env files keep working.
    gemini_api_key: Optional[str] = None
    gemini_model: str = Field(default="gemini-2.0-flash")
    gemini_endpoint: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    gemini_timeout_s: float = Field(default=30.0)
    gemini_temperature: float = Field(default=0.7)
    gemini_max_output_tokens: int = Field(default=256)

    # toggle: if false, we keep using the stub
    use_gemini_captioner: bool = Field(default=True)

    # ---- History store ----
    history_backend: str = Field(
        default="memory",
        description='"memory" (process-local, keeps only the newest 20 records) | "mongo"',
    )
    mongo_uri: str = Field(default="mongodb://localhost:27017")
    mongo_database: str = Field(default="gemini-captionator")
    mongo_collection: str = Field(default="images")
    history_limit: int = Field(default=20, ge=1, le=20, description="Max records returned by list")

    # ---- Identity provider (Firebase Identity Toolkit) ----
    firebase_api_key: Optional[str] = None
    firebase_auth_endpoint: str = Field(default="https://identitytoolkit.googleapis.com/v1")
    auth_timeout_s: float = Field(default=12.0)

    # Accepted image types advertised to file choosers (the gate itself only checks "image/")
    accepted_image_types: List[str] = Field(
        default=["image/jpeg", "image/png", "image/webp", "image/gif"]
    )

settings = Settings()
