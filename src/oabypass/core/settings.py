"""Environment-driven settings for the bypass proxy."""
from dataclasses import dataclass
from functools import lru_cache
import os
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name, "").strip()
    if not value:
        return None
    return float(value)


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    log_level: str
    log_dir: Optional[str]
    log_headers: bool
    app_version: str
    upstream_base_url: Optional[str]
    upstream_timeout: Optional[float]
    max_body_mb: float
    cors_origins: Tuple[str, ...]

    @property
    def max_content_length(self) -> int:
        return int(self.max_body_mb * 1024 * 1024)


@lru_cache
def get_settings() -> Settings:
    """Load settings from environment variables."""
    origins = os.getenv("CORS_ORIGINS", "*")
    return Settings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8080")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=os.getenv("LOG_DIR") or None,
        log_headers=_env_flag("LOG_HEADERS"),
        app_version=os.getenv("APP_VERSION", "0.1.0"),
        upstream_base_url=os.getenv("UPSTREAM_BASE_URL") or None,
        upstream_timeout=_env_float("UPSTREAM_TIMEOUT"),
        max_body_mb=float(os.getenv("MAX_BODY_MB", "512")),
        cors_origins=tuple(item.strip() for item in origins.split(",") if item.strip()),
    )
