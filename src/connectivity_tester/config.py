"""Configuration management for the connectivity tester."""

import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .connection import TypeMode

# Load environment variables from .env file
load_dotenv()

DEFAULT_LOGIN_TIMEOUT = 30
DEFAULT_MAX_STRING_LENGTH = 4000

VALID_LOG_LEVELS = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}


class Config(BaseSettings):
    """Settings read from the environment (and a local .env file)."""

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        env_prefix="",
        extra="ignore",
    )

    log_level: str = Field(
        description="Logging level",
        default="WARNING"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        if not v:
            v = os.getenv("LOG_LEVEL", "WARNING")

        if v.upper() not in VALID_LOG_LEVELS:
            print(f"⚠️ Invalid LOG_LEVEL '{v}', using INFO", file=sys.stderr)
            return 'INFO'
        return v.upper()


class ConnectionRequest(BaseModel):
    """One connectivity test, built once from the command line."""

    model_config = ConfigDict(frozen=True)

    connection_string: str
    database: Optional[str] = None
    login_timeout: int = Field(default=DEFAULT_LOGIN_TIMEOUT, ge=0)
    connection_timeout: Optional[int] = Field(default=None, ge=0)
    simple_types: bool = False
    max_string_length: bool = False
    verbose: bool = False

    @property
    def type_mode(self) -> TypeMode:
        return TypeMode.SIMPLE if self.simple_types else TypeMode.STANDARD

    @property
    def max_string_length_value(self) -> Optional[int]:
        """Cap on returned string fields, or None for unbounded."""
        return DEFAULT_MAX_STRING_LENGTH if self.max_string_length else None


def configure_logging(level: str) -> None:
    """Send log records to stderr so they never mix with the report."""
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stderr)],
    )
