from dataclasses import dataclass
from functools import lru_cache
import os

PRODUCTION_MODE = "production"


def _to_float(value: str | None, *, default: float, minimum: float) -> float:
    if value is None:
        return default
    parsed = float(value)
    return max(minimum, parsed)


@dataclass(frozen=True)
class Settings:
    mode: str
    api_url: str | None
    dev_api_url: str
    timeout_seconds: float
    token: str | None
    log_level: str


@lru_cache
def get_settings() -> Settings:
    return Settings(
        mode=os.getenv("TRACKER_MODE", "development").strip().lower(),
        api_url=os.getenv("TRACKER_API_URL") or None,
        dev_api_url=os.getenv("TRACKER_DEV_API_URL", "http://localhost:8000"),
        timeout_seconds=_to_float(
            os.getenv("TRACKER_TIMEOUT_SECONDS"), default=30.0, minimum=1.0
        ),
        token=os.getenv("TRACKER_TOKEN") or None,
        log_level=os.getenv("TRACKER_LOG_LEVEL", "WARNING").upper(),
    )


def resolve_base_url(settings: Settings) -> str:
    if settings.mode == PRODUCTION_MODE:
        if not settings.api_url:
            raise ValueError("TRACKER_API_URL must be set in production mode")
        return settings.api_url.rstrip("/")
    return settings.dev_api_url.rstrip("/")
