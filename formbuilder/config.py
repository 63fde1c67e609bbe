"""Configuration: environment-driven settings via pydantic-settings.

Invariants:
    - Secrets (api_token) come from the environment or .env, never from code
    - get_settings() is cached (lru_cache): one instance per process
    - Every setting has a default so the engine works against a local API out of the box
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Record editor settings from FORMBUILDER_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FORMBUILDER_", env_file=".env", case_sensitive=False,
    )

    # Data API
    api_base_url: str = "http://localhost:5000/xams"
    api_token: str | None = None
    api_timeout_seconds: float = 30.0
    api_max_retries: int = 3
    api_base_delay_ms: int = 250
    api_max_delay_ms: int = 10_000

    # Endpoint paths, relative to api_base_url
    metadata_path: str = "/metadata"
    read_path: str = "/read"
    create_path: str = "/create"
    update_path: str = "/update"
    permissions_path: str = "/permissions"

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    return Settings()
