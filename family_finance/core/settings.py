"""Configuration and environment settings for the Family Finance Ledger."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings for the Family Finance Ledger."""

    groq_api_key: str = ""
    statement_model: str = "llama-3.3-70b-versatile"
    vision_model: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    advisor_model: str = "llama-3.3-70b-versatile"
    llm_temperature: float = 0.1
    llm_max_completion_tokens: int = 8192
    llm_timeout_seconds: float = 60.0
    duplicate_epsilon: float = 0.01
    category_rules_file: str | None = None
    database_url: str = "sqlite:///ledger.db"
    log_file: str | None = "logs/family_finance.log"
    server_host: str = "127.0.0.1"
    server_port: int = 8000

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings."""
    return Settings()
