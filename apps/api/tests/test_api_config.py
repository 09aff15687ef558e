from tracker_api.config import get_settings


def test_image_base_url_strips_trailing_slash(monkeypatch) -> None:
    monkeypatch.setenv("API_IMAGE_BASE_URL", "https://cdn.example.com/images/")

    settings = get_settings()

    assert settings.image_base_url == "https://cdn.example.com/images"


def test_database_url_defaults_to_local_sqlite(monkeypatch) -> None:
    monkeypatch.delenv("API_DATABASE_URL", raising=False)
    monkeypatch.setenv("API_DB_ECHO", "yes")

    settings = get_settings()

    assert settings.database_url.startswith("sqlite+pysqlite:///")
    assert settings.db_echo is True
