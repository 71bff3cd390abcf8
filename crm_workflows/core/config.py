"""Environment-driven configuration with Pydantic v2."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings driven entirely by environment variables."""

    # Database Configuration
    database_url: str = Field(default="sqlite+aiosqlite:///./data/workflows.db")
    database_echo: bool = Field(default=False)
    database_pool_size: int = Field(default=5, ge=1, le=100)
    database_max_overflow: int = Field(default=10, ge=0, le=100)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    # Execution Engine
    max_delay_seconds: float = Field(default=10.0, ge=0.0)
    fetch_row_limit: int = Field(default=100, ge=1, le=10000)
    default_actor_id: Optional[str] = Field(default=None)

    # Email proxy
    email_api_url: str = Field(default="http://localhost:3001")
    email_from_name: str = Field(default="The Genworks CRM")
    email_timeout: float = Field(default=15.0, gt=0.0, le=120.0)

    # Execution administration
    execution_stats_window_days: int = Field(default=30, ge=1)
    execution_list_limit: int = Field(default=100, ge=1)

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database directory exists for SQLite."""
        if v and v.startswith("sqlite") and ":///" in v:
            db_path = v.split("///")[1]
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("email_api_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def max_delay_ms(self) -> int:
        """Delay-node cap in milliseconds."""
        return int(self.max_delay_seconds * 1000)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
