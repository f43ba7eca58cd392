"""Root logger setup for the command line."""

from __future__ import annotations

import logging

from .env import optional_env_var
from .errors import ConfigurationError

# httpx logs every request at INFO; gist pushes would drown the status lines.
_NOISY_LOGGERS = ("httpx", "httpcore")


def _level_from_env(default: int) -> int:
    name = optional_env_var("WORMTRACKER_LOG_LEVEL")
    if name is None:
        return default
    level = logging.getLevelNamesMapping().get(name.upper())
    if level is None:
        raise ConfigurationError(f"WORMTRACKER_LOG_LEVEL is not a logging level: {name!r}")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Configure the root logger; ``WORMTRACKER_LOG_LEVEL`` wins over the INFO default."""

    resolved = level if level is not None else _level_from_env(logging.INFO)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
