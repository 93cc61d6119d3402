from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic_settings import BaseSettings

if TYPE_CHECKING:
    from dexparser.parser.utils.types import ParseConfig


class Settings(BaseSettings):
    max_workers: int = 4  # Block driver thread pool size
    log_level: str = "INFO"
    try_unknown_dex: bool = False
    throw_error: bool = False
    aggregate_trades: bool = True

    class Config:
        env_file = ".env"
        env_prefix = "DEXPARSER_"
        extra = "ignore"


settings = Settings()


def default_parse_config() -> ParseConfig:
    """ParseConfig seeded from environment settings."""
    from dexparser.parser.utils.types import ParseConfig

    return ParseConfig(
        try_unknown_dex=settings.try_unknown_dex,
        throw_error=settings.throw_error,
        aggregate_trades=settings.aggregate_trades,
    )
