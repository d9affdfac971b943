"""
Configuration and environment loading.

- Loads a `.env` file (if present) into the environment.
- Exposes SETTINGS with the knobs used across the project (database, clocks, opponent oracle).
"""

import os
from dataclasses import dataclass
from typing import Any, Callable, Optional

from dotenv import load_dotenv

load_dotenv()


def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
    value = os.environ.get(name)
    if value is None:
        return default
    return cast(value) if cast else value


def _optional_int(value: str) -> Optional[int]:
    return int(value) if value.strip() else None


@dataclass(frozen=True)
class Settings:
    # Persistence (player profiles)
    database_url: str

    # Clocks
    timer_seconds: int
    time_twist_bonus_seconds: int

    # Opponent move oracle (OpenAI-compatible wire format)
    oracle_api_key: str
    oracle_base_url: Optional[str]
    oracle_model: str
    oracle_timeout_s: float

    # Seed for power-up grants / fallback moves. None: nondeterministic
    random_seed: Optional[int]


SETTINGS = Settings(
    database_url=_get("PHANTOM_DATABASE_URL", "sqlite:///phantom_pawn.db"),
    timer_seconds=_get("PHANTOM_TIMER_SECONDS", 300, cast=int),
    time_twist_bonus_seconds=_get("PHANTOM_TIME_TWIST_SECONDS", 30, cast=int),
    oracle_api_key=_get("PHANTOM_ORACLE_API_KEY", ""),
    oracle_base_url=_get("PHANTOM_ORACLE_BASE_URL", None),
    oracle_model=_get("PHANTOM_ORACLE_MODEL", "gpt-4o-mini"),
    oracle_timeout_s=_get("PHANTOM_ORACLE_TIMEOUT_S", 10.0, cast=float),
    random_seed=_get("PHANTOM_RANDOM_SEED", None, cast=_optional_int),
)
