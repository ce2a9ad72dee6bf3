"""
Centralised application settings loaded from environment / .env file.
"""
from __future__ import annotations

from pathlib import Path
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load .env from project root (two levels up from this file)
_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseSettings):
    # ── Postgres ─────────────────────────────────────────
    postgres_user: str = "dashboard_ro"
    postgres_password: str = ""
    postgres_db: str = "medbrain"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    database_url_override: str = Field("", alias="DATABASE_URL")
    database_ssl_root_cert: str = ""
    db_pool_size: int = 10
    db_connect_timeout_seconds: int = 5

    # ── LLM ──────────────────────────────────────────────
    llm_primary_provider: str = "openai"  # mock | openai | anthropic
    llm_secondary_provider: str = "anthropic"
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    openai_model: str = "gpt-4o"
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    llm_timeout_seconds: float = 30.0
    llm_max_tokens: int = 2000

    # ── Gateway limits ───────────────────────────────────
    chat_max_rows: int = 1000
    chat_max_attempts: int = 2
    query_max_rows: int = 5000
    export_max_rows: int = 10000
    cors_allow_origins: list[str] = Field(default_factory=list)

    # ── Workflow status (n8n) ────────────────────────────
    n8n_api_url: str = ""
    n8n_api_key: str = ""
    n8n_workflow_id: str = "7tp9fz1NxbfamadU"
    n8n_timeout_seconds: float = 10.0

    # ── App ──────────────────────────────────────────────
    api_port: int = 8000
    log_level: str = "INFO"

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def n8n_configured(self) -> bool:
        return bool(self.n8n_api_url and self.n8n_api_key)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
