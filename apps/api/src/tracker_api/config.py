from dataclasses import dataclass
from functools import lru_cache
import os


def _to_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str
    db_echo: bool
    image_dir: str
    image_base_url: str


@lru_cache
def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("API_DATABASE_URL", "sqlite+pysqlite:///./tracker.db"),
        db_echo=_to_bool(os.getenv("API_DB_ECHO"), default=False),
        image_dir=os.getenv("API_IMAGE_DIR", "./data/images"),
        image_base_url=os.getenv("API_IMAGE_BASE_URL", "http://localhost:8000/images").rstrip("/"),
    )
