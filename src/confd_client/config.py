"""Configuration management for the confd client.

Settings come from environment variables (prefix CONFD_) or a .env file and
only provide defaults; callers can always override name and socket path
programmatically.
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CLIENT_NAME = "confd-py-client"
DEFAULT_SOCKET_PATH = "/var/confd/service-interface.socket"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
VALID_LOG_FORMATS = {"console", "json"}


class Settings(BaseSettings):
    """Client settings.

    Environment variables:
        CONFD_CLIENT_NAME: Name sent as "subscriber" in subscription requests
        CONFD_SOCKET_PATH: Unix socket of the confd daemon
        CONFD_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL
        CONFD_LOG_FORMAT: console or json
    """

    model_config = SettingsConfigDict(
        env_prefix="CONFD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    client_name: str = DEFAULT_CLIENT_NAME
    socket_path: str = DEFAULT_SOCKET_PATH
    log_level: str = "INFO"
    log_format: str = "console"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        upper = v.upper()
        if upper not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got {v!r}")
        return upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        lower = v.lower()
        if lower not in VALID_LOG_FORMATS:
            raise ValueError(f"log_format must be one of {sorted(VALID_LOG_FORMATS)}, got {v!r}")
        return lower


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
