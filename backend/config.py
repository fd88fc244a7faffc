"""
Configuration module for the chat gateway.
Loads environment variables and provides centralized config access.
"""

from pathlib import Path
from typing import Optional
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings
from functools import lru_cache

# ============================================================
# Centralized Data Paths
# ============================================================
# Client-side state (sessions, preferences) lives under <project>/data/.
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# SQLite key/value store used by the client library
CLIENT_DB_PATH = DATA_DIR / "client.db"

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses pydantic-settings for validation and type coercion.

    Precedence for every key: constructor arguments, then process
    environment, then the .env file, then the defaults below.
    """

    # ============================================================
    # Model Registry
    # ============================================================
    # Structured multi-model list (JSON array of partial descriptors)
    models_json: Optional[str] = Field(
        None, validation_alias=AliasChoices("models_json", "MODELS_JSON", "AI_MODELS")
    )

    # Legacy single-provider OpenAI binding
    openai_api_key: Optional[str] = Field(
        None, validation_alias=AliasChoices("openai_api_key", "OPENAI_API_KEY", "OPENAI_APIKEY")
    )
    openai_model_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("openai_model_name", "OPENAI_MODEL_NAME", "OPENAI_MODEL")
    )
    openai_base_url: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "openai_base_url",
            "OPENAI_BASE_URL",
            "OPENAI_API_BASE",
            "OPENAI_API_HOST",
            "OPENAI_API_URL",
        ),
    )
    openai_temperature: float = 0.7

    # Legacy single-provider Gemini binding
    gemini_api_key: Optional[str] = None
    gemini_base_url: Optional[str] = Field(
        None, validation_alias=AliasChoices("gemini_base_url", "API_BASE_URL")
    )
    gemini_model_name: str = DEFAULT_GEMINI_MODEL
    gemini_max_output_tokens: int = 8000

    # Tie-breaking overrides for the default model
    default_model_id: Optional[str] = None
    ai_provider: Optional[str] = Field(
        None, validation_alias=AliasChoices("ai_provider", "AI_PROVIDER", "MODEL_PROVIDER")
    )

    # Fail at load time instead of serving an empty model list
    require_models: bool = False

    # ============================================================
    # Access Control
    # ============================================================
    # Comma-separated list of accepted passwords. Empty disables the gate.
    site_password: Optional[str] = None
    # Shared secret for request signatures. Empty disables signing.
    public_secret_key: Optional[str] = None

    # ============================================================
    # Client Behaviour
    # ============================================================
    max_history_messages: int = 99
    client_db_path: Optional[str] = None

    # ============================================================
    # Server Configuration
    # ============================================================
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Comma-separated origins
    cors_origins: str = "http://localhost:3000,http://localhost:4321"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse the comma-separated CORS origins."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def password_list(self) -> list[str]:
        """Accepted site passwords, empty when the gate is disabled."""
        raw = (self.site_password or "").strip()
        if not raw:
            return []
        return [p.strip() for p in raw.split(",")]

    @property
    def signing_secret(self) -> str:
        return (self.public_secret_key or "").strip()

    @property
    def resolved_client_db_path(self) -> Path:
        return Path(self.client_db_path) if self.client_db_path else CLIENT_DB_PATH


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reloading env vars on every call.
    """
    return Settings()
