"""Aggregator configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; HKI-Zone-Signals/2.0)"


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./govsignals.db",
        alias="DATABASE_URL",
    )
    auto_create_schema: bool = Field(default=True, alias="AUTO_CREATE_SCHEMA")

    # Server
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cron_secret: str = Field(default="", alias="CRON_SECRET")
    rate_limit: str = Field(default="60/minute", alias="RATE_LIMIT")

    # Aggregation
    aggregator_feed_groups: str = Field(default="td_notices,td_press", alias="AGGREGATOR_FEED_GROUPS")
    anchor_language: str = Field(default="en", alias="ANCHOR_LANGUAGE")
    fetch_user_agent: str = Field(default=DEFAULT_USER_AGENT, alias="FETCH_USER_AGENT")
    syndication_timeout_seconds: float = Field(default=10.0, alias="SYNDICATION_TIMEOUT_SECONDS")
    bulk_document_timeout_seconds: float = Field(default=30.0, alias="BULK_DOCUMENT_TIMEOUT_SECONDS")
    base_priority: int = Field(default=50, alias="BASE_PRIORITY")

    # Scheduler
    enable_scheduler: bool = Field(default=True, alias="ENABLE_SCHEDULER")
    aggregation_interval_seconds: int = Field(
        default=300,
        validation_alias=AliasChoices("AGGREGATION_INTERVAL_SECONDS", "AGGREGATION_INTERVAL"),
    )

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() in {"production", "prod"}

    @property
    def feed_groups_list(self) -> list[str]:
        return [g.strip() for g in self.aggregator_feed_groups.split(",") if g.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()


class AggregatorConfig(BaseModel):
    """Immutable per-run configuration handed to the aggregator.

    Built once from ``Settings`` (or directly in tests) and passed down
    explicitly; pipeline components never read ``settings`` themselves.
    """

    model_config = ConfigDict(frozen=True)

    feed_groups: tuple[str, ...] = ("td_notices", "td_press")
    anchor_language: str = "en"
    user_agent: str = DEFAULT_USER_AGENT
    syndication_timeout: float = 10.0
    bulk_document_timeout: float = 30.0
    base_priority: int = 50

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> "AggregatorConfig":
        source = source or settings
        return cls(
            feed_groups=tuple(source.feed_groups_list),
            anchor_language=source.anchor_language,
            user_agent=source.fetch_user_agent,
            syndication_timeout=source.syndication_timeout_seconds,
            bulk_document_timeout=source.bulk_document_timeout_seconds,
            base_priority=source.base_priority,
        )
