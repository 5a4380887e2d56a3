from functools import lru_cache
from typing import Literal, Optional

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised application settings, sourced from environment variables or .env."""

    app_name: str = Field(default="ExpenseBot")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    database_url: str = Field(alias="DATABASE_URL")
    direct_database_url: Optional[str] = Field(
        default=None,
        alias="DIRECT_DATABASE_URL",
        description="Optional direct Postgres connection string used for running migrations.",
    )
    auto_run_migrations: bool = Field(default=False, alias="AUTO_RUN_MIGRATIONS")
    telegram_bot_token: Optional[str] = Field(default=None, alias="TELEGRAM_BOT_TOKEN")
    telegram_webhook_secret: Optional[str] = Field(
        default=None, alias="TELEGRAM_WEBHOOK_SECRET"
    )
    telegram_register_webhook_on_start: bool = Field(
        default=False, alias="TELEGRAM_REGISTER_WEBHOOK_ON_START"
    )
    backend_base_url: Optional[AnyHttpUrl] = Field(
        default=None,
        alias="BACKEND_BASE_URL",
        description="The public URL where FastAPI is reachable (used by Telegram webhooks).",
    )
    internal_backend_base_url: Optional[AnyHttpUrl] = Field(
        default=None,
        alias="INTERNAL_BACKEND_BASE_URL",
        description="Internal URL the bot uses to reach the expense API; falls back to BACKEND_BASE_URL.",
    )
    user_timezone: str = Field(
        default="Asia/Bangkok",
        alias="USER_TIMEZONE",
        description="IANA zone used to resolve today/week/month boundaries and render timestamps.",
    )
    currency_symbol: str = Field(default="฿", alias="CURRENCY_SYMBOL")
    conversation_state_backend: Literal["memory", "database"] = Field(
        default="memory",
        alias="CONVERSATION_STATE_BACKEND",
        description="Where per-user conversation state lives; 'memory' is lost on restart.",
    )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached accessor so imports share a single settings instance."""
    return Settings()  # type: ignore[call-arg]
