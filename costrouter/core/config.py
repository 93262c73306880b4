"""
Application configuration via environment variables (12-factor).
Pydantic BaseSettings validates and coerces all values at startup.

Provider credentials and model catalogues are NOT settings: they live in the
JSON catalog file pointed to by CATALOG_PATH and can be changed at runtime
through the /config API (see catalog/store.py).
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------
    catalog_path: str = "config.json"   # created with {"providers": []} if missing

    # ------------------------------------------------------------------
    # Backend execution
    # ------------------------------------------------------------------
    # Unset = no timeout; a hung backend call hangs the request.
    backend_timeout_seconds: float | None = None

    # GitHub Copilot token exchange (provider type "copilot")
    copilot_token_url: str = "https://api.github.com/copilot_internal/v2/token"
    copilot_base_url:  str = "https://api.githubcopilot.com"

    # Azure OpenAI default API version (overridable per provider)
    azure_openai_api_version: str = "2024-08-01-preview"

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------
    log_level: str = "info"   # trace | debug | info | warn | error | fatal

    langsmith_api_key: str = ""
    langsmith_project: str = "costrouter"

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_env: str = "development"   # development | staging | production
    debug:   bool = False
    host:    str = "0.0.0.0"
    port:    int = 3000

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
