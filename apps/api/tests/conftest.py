from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from tracker_api.config import get_settings
from tracker_api.db import Base, get_engine
from tracker_api.main import app


@pytest.fixture(autouse=True)
def reset_api_caches() -> Iterator[None]:
    get_settings.cache_clear()
    get_engine.cache_clear()
    yield
    get_settings.cache_clear()
    get_engine.cache_clear()


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[TestClient]:
    sqlite_db_path = tmp_path / "api-tests.db"
    monkeypatch.setenv("API_DATABASE_URL", f"sqlite+pysqlite:///{sqlite_db_path}")
    monkeypatch.setenv("API_DB_ECHO", "false")
    monkeypatch.setenv("API_IMAGE_DIR", str(tmp_path / "images"))
    monkeypatch.setenv("API_IMAGE_BASE_URL", "http://testserver/images")

    engine = get_engine()
    Base.metadata.create_all(bind=engine)

    with TestClient(app, headers={"Authorization": "Bearer user-1"}) as test_client:
        yield test_client

    engine.dispose()
