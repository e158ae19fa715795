import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, model_validator
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine.url import make_url, URL

DEFAULT_DATABASE_URL = "sqlite:///./chat.db"
DEFAULT_TEST_DATABASE_URL = "sqlite://"

# Project root (parent of app/) - used so .env is found regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Explicitly load .env into os.environ so it works in tests and subprocesses
load_dotenv(_PROJECT_ROOT / ".env")


class Settings(BaseSettings):
    app_name: str = "classroom-chat-relay"
    database_url: Optional[str] = None  # Will be set dynamically
    database_pool_size: int = Field(
        default=10, json_schema_extra={"env": "DATABASE_POOL_SIZE"}
    )
    database_max_overflow: int = Field(
        default=20, json_schema_extra={"env": "DATABASE_MAX_OVERFLOW"}
    )
    database_echo: bool = Field(
        default=False, json_schema_extra={"env": "DATABASE_ECHO"}
    )
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("ENV", "ENVIRONMENT"),
    )
    log_level: str = Field(default="INFO", json_schema_extra={"env": "LOG_LEVEL"})
    port: int = Field(default=3000, json_schema_extra={"env": "PORT"})

    # Socket.IO / HTTP surface
    cors_allowed_origins: str = Field(
        default="*", json_schema_extra={"env": "CORS_ALLOWED_ORIGINS"}
    )
    socketio_path: str = Field(
        default="socket.io", json_schema_extra={"env": "SOCKETIO_PATH"}
    )

    # Session codes are 5-digit numbers; give up after this many collisions
    session_code_max_attempts: int = Field(
        default=100,
        ge=1,
        json_schema_extra={"env": "SESSION_CODE_MAX_ATTEMPTS"},
    )

    @model_validator(mode="before")
    def set_database_url(cls, values):
        """Set the database_url dynamically based on the environment field."""
        environment = (
            values.get("environment")
            or values.get("ENV")
            or values.get("ENVIRONMENT")
            or os.getenv("ENV", os.getenv("ENVIRONMENT", "development"))
        )
        if environment.lower() == "test":
            values["database_url"] = os.getenv(
                "TEST_DATABASE_URL", DEFAULT_TEST_DATABASE_URL
            )
        else:
            values["database_url"] = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

        return values

    @property
    def is_production(self) -> bool:
        """Check if the current environment is production."""
        return self.environment.lower() == "production"

    @property
    def is_test(self) -> bool:
        """Check if the current environment is test."""
        return self.environment.lower() == "test"

    @property
    def database_url_obj(self) -> URL:
        """Return the database URL as a URL object using sqlalchemy's make_url."""
        if not self.database_url:
            raise ValueError("Database URL is not set.")
        return make_url(self.database_url)

    @property
    def cors_origins(self) -> list[str]:
        """CORS origins as a list; '*' stays a single wildcard entry."""
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


def get_settings() -> Settings:
    """Get application settings with required environment variables."""
    return Settings()
