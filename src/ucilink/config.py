"""Configuration management for ucilink."""

from __future__ import annotations

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ucilink.logging_utils import configure_logging


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="UCILINK_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Engine process
    engine_path: str = Field(default="stockfish", description="Engine executable (path or name on PATH)")
    engine_args: list[str] = Field(default_factory=list, description="Extra arguments for the engine")

    # Dispatcher
    command_timeout: float | None = Field(
        default=None, gt=0, description="Seconds to wait for a completion line; unset waits forever"
    )
    quit_timeout: float = Field(default=5.0, gt=0, description="Seconds to wait for the engine to exit after quit")

    # Self-play
    movetime_ms: int = Field(default=1000, gt=0, description="Search time per move in milliseconds")
    max_plies: int = Field(default=1000, gt=0, description="Stop self-play after this many half moves")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")

    @property
    def argv(self) -> list[str]:
        return [self.engine_path, *self.engine_args]


def get_settings(**overrides: Any) -> Settings:
    """Build settings from the environment and configure logging.

    Keyword arguments whose value is ``None`` are ignored so CLI options that
    were not given fall back to the environment.
    """
    settings = Settings(**{key: value for key, value in overrides.items() if value is not None})
    configure_logging(level=settings.log_level)
    return settings
