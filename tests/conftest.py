"""Shared fixtures: clean settings and instant retries."""
import httpx
import pytest

from reachstream.config import Settings, get_settings

PROXY_ENV = ("OXYLABS_USERNAME", "OXYLABS_PASSWORD", "OXYLABS_HOST", "OXYLABS_PORT")


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Run every test without proxy credentials and with a fresh settings cache."""
    for name in PROXY_ENV:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    """Retries happen without sleeping."""
    monkeypatch.setattr("reachstream.scrapers.base.time.sleep", lambda seconds: None)


@pytest.fixture
def settings():
    return Settings(_env_file=None, retry_limit=2, retry_backoff=0)


@pytest.fixture
def client():
    with httpx.Client() as c:
        yield c
