"""Configuration helpers for the Team Calendar engine."""
from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Optional

# Hard backstop on generated occurrences per base event.
MAX_OCCURRENCES = 1000
DEFAULT_HORIZON_DAYS = 365

DEFAULT_STORE_DIR = Path(__file__).resolve().parent.parent / "event_store"


class ConfigError(RuntimeError):
    """Raised when configuration values are missing or invalid."""


@dataclass(slots=True)
class Settings:
    """Runtime configuration for the engine, API and CLI."""

    event_store_dir: Path = DEFAULT_STORE_DIR
    max_occurrences: int = MAX_OCCURRENCES
    default_horizon_days: int = DEFAULT_HORIZON_DAYS
    week_start_day: int = 0  # 0=Sunday, 1=Monday
    environment: str = "local"


def _int_from_env(
    var: str,
    default: int,
    *,
    minimum: int,
    maximum: Optional[int] = None,
) -> int:
    raw = os.getenv(var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{var} must be an integer, got {raw!r}.") from exc
    if value < minimum or (maximum is not None and value > maximum):
        bounds = f">= {minimum}" if maximum is None else f"between {minimum} and {maximum}"
        raise ConfigError(f"{var} must be {bounds}, got {value}.")
    return value


def load_settings() -> Settings:
    """Load settings from environment variables.

    Recognised variables:
        TCAL_ENV: Deployment environment label (default "local").
        TCAL_EVENT_STORE_DIR: Directory for the JSONL event store.
        TCAL_MAX_OCCURRENCES: Occurrence ceiling per base event (1..1000).
        TCAL_DEFAULT_HORIZON_DAYS: Expansion horizon when callers pass none.
        TCAL_WEEK_START_DAY: 0 for Sunday, 1 for Monday.

    Returns:
        Settings with the resolved values.

    Raises:
        ConfigError: if a value is not an integer or is out of range.
    """

    store_dir = os.getenv("TCAL_EVENT_STORE_DIR", "").strip()

    return Settings(
        event_store_dir=Path(store_dir) if store_dir else DEFAULT_STORE_DIR,
        max_occurrences=_int_from_env(
            "TCAL_MAX_OCCURRENCES", MAX_OCCURRENCES, minimum=1, maximum=MAX_OCCURRENCES
        ),
        default_horizon_days=_int_from_env(
            "TCAL_DEFAULT_HORIZON_DAYS", DEFAULT_HORIZON_DAYS, minimum=1
        ),
        week_start_day=_int_from_env("TCAL_WEEK_START_DAY", 0, minimum=0, maximum=1),
        environment=os.getenv("TCAL_ENV", "local").strip() or "local",
    )
