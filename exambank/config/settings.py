"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ─────────────────────────────────────────────────
#
# Configuration is read from TWO sources (in priority order):
#
#   1. **Environment variables** -- e.g., OPENAI_API_KEY=sk-abc123
#   2. **.env file** -- key=value lines in the project root .env file
#
# Field `openai_api_key` maps to env var `OPENAI_API_KEY`.  Defaults apply
# when neither source sets a value.  Secrets never belong in config.yaml;
# that file only carries pipeline tuning (see loader.py).
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ExamBank application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Completion providers ===
    # Empty string = "not configured" → provider selection in main.py skips it.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible gateways (TogetherAI, Azure proxies, ...)
    openai_text_model: str = "gpt-4o"
    openai_embedding_model: str = "text-embedding-3-small"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    # "auto" prefers OpenAI (the embedding provider needs its key anyway),
    # then Anthropic.
    llm_provider: str = "auto"

    # === Persistence ===
    database_path: str = "data/exambank.db"

    # === Downstream notification ===
    notification_webhook_url: str = ""

    # === App Config ===
    config_path: str = "config/config.yaml"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return the completion provider names that have an API key configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        return providers
