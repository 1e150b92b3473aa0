"""
Centralised application settings loaded from environment / .env file.
"""
from __future__ import annotations

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load .env from project root (two levels up from this file)
_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # ── Postgres ─────────────────────────────────────────
    postgres_user: str = "lifedash"
    postgres_password: str = "lifedash_pw"
    postgres_db: str = "lifedash"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    # ── LLM ──────────────────────────────────────────────
    llm_provider: str = "mock"  # mock | openai | anthropic
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-haiku-20240307"
    llm_timeout_seconds: float = 30.0
    router_temperature: float = 0.3
    analysis_temperature: float = 0.7
    history_max_turns: int = 20

    # ── Auth ─────────────────────────────────────────────
    session_cookie_name: str = "lifedash_session"

    # ── App ──────────────────────────────────────────────
    api_port: int = 8000
    log_level: str = "INFO"
    sql_row_limit: int = 200
    query_timeout_ms: int = 10_000

    @property
    def database_url(self) -> str:
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
