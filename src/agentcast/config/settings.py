"""Application settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "agentcast"
    app_env: str = "dev"
    # "local" synthesises the conversation; "external" delegates to the oracle.
    conversation_mode: Literal["local", "external"] = "local"
    database_url: str = ""
    oracle_url: str = "http://127.0.0.1:8080/ask"
    oracle_task_id: str = "60d0b5b_2"
    oracle_timeout_s: float = Field(default=30.0, ge=0.5)
    oracle_max_retries: int = Field(default=0, ge=0)
    oracle_backoff_s: float = Field(default=0.5, ge=0.0)
    # Delay before each emitted step is pacing_base_s + uniform(0, pacing_jitter_s).
    pacing_base_s: float = Field(default=1.5, ge=0.0)
    pacing_jitter_s: float = Field(default=1.0, ge=0.0)

    model_config = SettingsConfigDict(
        env_prefix="AGENTCAST_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
