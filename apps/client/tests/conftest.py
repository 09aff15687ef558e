from collections.abc import Iterator

import pytest

from tracker_client.config import get_settings


@pytest.fixture(autouse=True)
def reset_client_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
