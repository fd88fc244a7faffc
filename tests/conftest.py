"""Pytest fixtures for chat gateway tests."""

from __future__ import annotations

import pytest

from config import Settings, get_settings
from storage.kv_store import MemoryKeyValueStore
from storage.sessions import SessionStore

# Every key Settings can pick up from the environment
_ENV_KEYS = (
    "MODELS_JSON", "AI_MODELS",
    "OPENAI_API_KEY", "OPENAI_APIKEY", "OPENAI_MODEL_NAME", "OPENAI_MODEL",
    "OPENAI_BASE_URL", "OPENAI_API_BASE", "OPENAI_API_HOST", "OPENAI_API_URL", "OPENAI_TEMPERATURE",
    "GEMINI_API_KEY", "API_BASE_URL", "GEMINI_MODEL_NAME", "GEMINI_MAX_OUTPUT_TOKENS",
    "DEFAULT_MODEL_ID", "AI_PROVIDER", "MODEL_PROVIDER", "REQUIRE_MODELS",
    "SITE_PASSWORD", "PUBLIC_SECRET_KEY", "MAX_HISTORY_MESSAGES", "CLIENT_DB_PATH", "CORS_ORIGINS",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_settings():
    """Settings built only from explicit arguments and the cleaned environment."""

    def _make(**kwargs) -> Settings:
        return Settings(_env_file=None, **kwargs)

    return _make


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def session_store(kv: MemoryKeyValueStore) -> SessionStore:
    return SessionStore(kv)
