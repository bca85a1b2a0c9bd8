# backend/creatorlink/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    load_dotenv(env_path)


RecruitmentStatusMode = Literal["permissive", "strict"]


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment label")

    # Database
    database_url: str = Field(
        default="sqlite:///./creatorlink.db",
        description="SQLAlchemy database URL (PostgreSQL in production)",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")
    create_tables_on_startup: bool = Field(
        default=True, description="Run metadata.create_all during application startup"
    )

    log_level: str = Field(default="INFO", description="Root log level")

    # Messaging configuration
    message_max_length: int = Field(default=2000, description="Maximum message content length")
    messages_default_page_size: int = Field(default=50)
    messages_max_page_size: int = Field(default=100)
    inbox_default_page_size: int = Field(default=20)
    inbox_max_page_size: int = Field(default=50)
    recruitment_status_mode: RecruitmentStatusMode = Field(
        default="permissive",
        description="permissive: any participant may set any recruitment status; "
        "strict: transitions follow the negotiation graph",
    )

    # Realtime configuration
    realtime_outbound_queue_size: int = Field(
        default=256, description="Buffered outbound events per connection before dropping"
    )
    realtime_heartbeat_interval: int = Field(
        default=30, description="Heartbeat interval in seconds for idle sockets"
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("recruitment_status_mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper() or "INFO"
        return value

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
