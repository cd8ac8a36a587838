"""
Settings - Environment-driven configuration.

Values come from the process environment; a local .env file is loaded
first so development setups don't need exported variables.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


@dataclass(frozen=True)
class Settings:
    item_bank_dir: str = "data/items"
    min_item_count: int = 1
    max_item_count: int = 200
    timer_interval_seconds: float = 1.0
    time_warning_seconds: int = 1800  # 30 minutes left
    completed_session_ttl_seconds: float = 3600.0
    random_seed: Optional[int] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        seed = os.getenv("CAT_RANDOM_SEED")
        return cls(
            item_bank_dir=os.getenv("ITEM_BANK_DIR", cls.item_bank_dir),
            min_item_count=_env_int("MIN_ITEM_COUNT", cls.min_item_count),
            max_item_count=_env_int("MAX_ITEM_COUNT", cls.max_item_count),
            timer_interval_seconds=_env_float("TIMER_INTERVAL_SECONDS", cls.timer_interval_seconds),
            time_warning_seconds=_env_int("TIME_WARNING_SECONDS", cls.time_warning_seconds),
            completed_session_ttl_seconds=_env_float(
                "COMPLETED_SESSION_TTL_SECONDS", cls.completed_session_ttl_seconds
            ),
            random_seed=int(seed) if seed else None,
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
        )
