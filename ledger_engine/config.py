"""Runtime settings for the ledger engine, read from the environment."""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core import (
    DEFAULT_STARTING_BALANCE,
    MARKET_TICK_SECONDS,
    MARKET_VOLATILITY,
)


ENV_PREFIX = "LEDGER_ENGINE_"

HOTEL_SNAPSHOT_FILE = "hotel_data.jsonl"
PORTFOLIO_SNAPSHOT_FILE = "portfolio.jsonl"
GRADES_SNAPSHOT_FILE = "grades.jsonl"
MARKET_EXPORT_FILE = "market_data.csv"


class Settings(BaseSettings):
    """Engine settings; each field reads LEDGER_ENGINE_<FIELD> from the environment."""

    log_level: str = "INFO"
    data_dir: Path = Path(".")
    market_tick_seconds: float = MARKET_TICK_SECONDS
    market_volatility: float = MARKET_VOLATILITY
    starting_balance: Decimal = DEFAULT_STARTING_BALANCE
    random_seed: Optional[int] = None

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        frozen=True,
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("market_tick_seconds")
    @classmethod
    def check_tick_seconds(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("market_tick_seconds must be > 0")
        return v

    @field_validator("market_volatility")
    @classmethod
    def check_volatility(cls, v: float) -> float:
        if not 0.0 <= v < 1.0:
            raise ValueError("market_volatility must be in [0, 1)")
        return v

    @field_validator("starting_balance")
    @classmethod
    def check_starting_balance(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("starting_balance must be >= 0")
        return v

    @property
    def hotel_snapshot_path(self) -> Path:
        return self.data_dir / HOTEL_SNAPSHOT_FILE

    @property
    def portfolio_snapshot_path(self) -> Path:
        return self.data_dir / PORTFOLIO_SNAPSHOT_FILE

    @property
    def grades_snapshot_path(self) -> Path:
        return self.data_dir / GRADES_SNAPSHOT_FILE

    @property
    def market_export_path(self) -> Path:
        return self.data_dir / MARKET_EXPORT_FILE


def load_settings(**overrides: Any) -> Settings:
    """Read Settings from the environment, with keyword overrides taking precedence.

    Unparseable or out-of-range values raise pydantic's ValidationError
    (a ValueError) naming the offending field.
    """
    return Settings(**overrides)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read once from os.environ."""
    return load_settings()
