"""GitHub Gist store configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

GIST_API_URL = "https://api.github.com"
GIST_TIMEOUT_SECONDS = 20.0
GIST_ACCEPT_HEADER = "application/vnd.github.v3+json"


@dataclass(frozen=True)
class GistConfig:
    """Holds GitHub Gist API configuration values."""

    token: str
    resilience: ResilienceConfig


def get_gist_config(*, resilience: ResilienceConfig | None = None) -> GistConfig:
    values = require_env_vars(("GITHUB_TOKEN",))
    token = values["GITHUB_TOKEN"]
    base_url = optional_env_var("WORMTRACKER_GIST_API_URL") or GIST_API_URL
    return GistConfig(
        token=token,
        resilience=resilience
        or ResilienceConfig(
            name="gist",
            base_url=base_url,
            timeout_seconds=GIST_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
            default_headers={
                "Authorization": f"token {token}",
                "Accept": GIST_ACCEPT_HEADER,
            },
        ),
    )
