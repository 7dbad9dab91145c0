"""Runtime settings for the CLI harness."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_STATE_FILE = ".reaction_track.json"
DEFAULT_LOG_LEVEL = "WARNING"
_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class Settings:
    """Container for runtime settings; CLI flags override these."""

    state_file: Path
    seed: int | None
    log_level: str


def _parse_seed(raw: str | None) -> int | None:
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def _parse_log_level(raw: str | None) -> str:
    level = (raw or DEFAULT_LOG_LEVEL).strip().upper()
    if level not in _LEVELS:
        return DEFAULT_LOG_LEVEL
    return level


def load_settings() -> Settings:
    """Load settings with environment overrides."""

    state_file = Path(os.getenv("REACTION_TRACK_STATE_FILE") or DEFAULT_STATE_FILE)
    seed = _parse_seed(os.getenv("REACTION_TRACK_SEED"))
    log_level = _parse_log_level(os.getenv("REACTION_TRACK_LOG_LEVEL"))
    return Settings(state_file=state_file, seed=seed, log_level=log_level)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=_parse_log_level(level),
        format="%(levelname)s %(name)s: %(message)s",
    )
