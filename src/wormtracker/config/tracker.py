"""Tuning values for the review/persistence loop."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from .env import float_env_var

DEFAULT_PUSH_DELAY_SECONDS = 8.0
DEFAULT_MIRROR_MAX_AGE_HOURS = 24.0
DEFAULT_MAX_CHARACTERS = 8
DEFAULT_SCAN_DEPTH = 3


@dataclass(frozen=True, slots=True)
class TrackerConfig:
    push_delay_seconds: float = DEFAULT_PUSH_DELAY_SECONDS
    mirror_max_age: timedelta = timedelta(hours=DEFAULT_MIRROR_MAX_AGE_HOURS)
    max_characters: int = DEFAULT_MAX_CHARACTERS
    scan_depth: int = DEFAULT_SCAN_DEPTH


def get_tracker_config() -> TrackerConfig:
    return TrackerConfig(
        push_delay_seconds=float_env_var(
            "WORMTRACKER_PUSH_DELAY_SECONDS", DEFAULT_PUSH_DELAY_SECONDS
        ),
        mirror_max_age=timedelta(
            hours=float_env_var("WORMTRACKER_MIRROR_MAX_AGE_HOURS", DEFAULT_MIRROR_MAX_AGE_HOURS)
        ),
    )
