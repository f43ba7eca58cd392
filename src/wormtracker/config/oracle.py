"""Extraction oracle (chat completion endpoint) configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import ResilienceConfig

ORACLE_TIMEOUT_SECONDS = 120.0


@dataclass(frozen=True)
class OracleConfig:
    """Holds the chat completion endpoint used for delta extraction."""

    model: str
    resilience: ResilienceConfig
    temperature: float = 0.0


def get_oracle_config(*, resilience: ResilienceConfig | None = None) -> OracleConfig:
    values = require_env_vars(("WORMTRACKER_ORACLE_URL", "WORMTRACKER_ORACLE_MODEL"))
    api_key = optional_env_var("WORMTRACKER_ORACLE_API_KEY")
    headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
    return OracleConfig(
        model=values["WORMTRACKER_ORACLE_MODEL"],
        resilience=resilience
        or ResilienceConfig(
            name="oracle",
            base_url=values["WORMTRACKER_ORACLE_URL"],
            timeout_seconds=ORACLE_TIMEOUT_SECONDS,
            default_headers=headers,
        ),
    )
