"""
FastAPI application configuration module
"""

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env overrides the process environment, even for empty values
load_dotenv(override=True)


REASONING_EFFORT_BUDGETS = {
    "none": 0,
    "low": 1000,
    "medium": 8000,
    "high": 24000,
}

SUPPORTED_MODALITIES = ("text", "image")

# local bucket server port when TRANSFORM_TARGET_PORT is unset
DEFAULT_BUCKET_PORT = 3003


class Settings(BaseSettings):
    """Application settings, read once and then treated as immutable."""

    model_config = SettingsConfigDict(frozen=True, extra="ignore")

    # Server Configuration
    LISTEN_PORT: int = 3000

    # Logging Configuration - three levels: false, info, debug
    LOG_LEVEL: str = "info"

    # Gemini API Configuration
    GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com"
    GEMINI_API_VERSION: str = "v1beta"
    GEMINI_API_KEY_HEADER: str = "x-goog-api-key"
    UPSTREAM_TIMEOUT: float = 120.0
    MAX_RETRIES: int = 0

    # Generation defaults
    DEFAULT_TEMPERATURE: float = 0.9
    RESPONSE_MIME_TYPE: str = "text/plain"

    # Local redirection - lets a local object store stand in for a public hostname
    TRANSFORM_SOURCE_HOSTNAME: Optional[str] = None
    TRANSFORM_TARGET_HOSTNAME: str = "localhost"
    TRANSFORM_TARGET_PORT: Optional[int] = None
    TRANSFORM_TARGET_PROTOCOL: str = "http:"

    # Bucket (object store) Configuration
    BUCKET_API_URL: Optional[str] = None
    BUCKET_API_KEY: Optional[str] = None

    # Outbound request limits
    FETCH_TIMEOUT: float = 30.0
    UPLOAD_TIMEOUT: float = 60.0
    REDIRECT_TIMEOUT: float = 5.0
    MAX_REDIRECTS: int = 10
    RESOLVE_GROUNDING_REDIRECTS: bool = True

    # Proxy Configuration
    HTTP_PROXY: Optional[str] = None
    HTTPS_PROXY: Optional[str] = None

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _normalize_log_level(cls, value) -> str:
        level = str(value or "info").lower()
        return level if level in ("false", "info", "debug") else "info"

    @field_validator(
        "TRANSFORM_SOURCE_HOSTNAME",
        "TRANSFORM_TARGET_PORT",
        "BUCKET_API_URL",
        "BUCKET_API_KEY",
        "HTTP_PROXY",
        "HTTPS_PROXY",
        mode="before",
    )
    @classmethod
    def _empty_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def DEBUG_LOGGING(self) -> bool:
        return self.LOG_LEVEL == "debug"

    @property
    def outbound_proxy(self) -> Optional[str]:
        return self.HTTPS_PROXY or self.HTTP_PROXY

    @property
    def bucket_base_url(self) -> str:
        """Base URL of the object store built from the legacy host/port/protocol triple."""
        protocol = self.TRANSFORM_TARGET_PROTOCOL.rstrip(":/") or "http"
        port = self.TRANSFORM_TARGET_PORT or DEFAULT_BUCKET_PORT
        return f"{protocol}://{self.TRANSFORM_TARGET_HOSTNAME}:{port}"

    @property
    def bucket_upload_url(self) -> str:
        """Upload endpoint; an explicit BUCKET_API_URL wins over the legacy triple."""
        url = self.BUCKET_API_URL or f"{self.bucket_base_url}/upload"
        if not url.endswith("/upload"):
            url = url.rstrip("/") + "/upload"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
