"""Extraction oracle backed by an OpenAI-compatible chat completion endpoint."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from wormtracker.adapters.http_resilience import ResilientClient, default_client_factory
from wormtracker.config import get_oracle_config
from wormtracker.domain.ports import OracleError

from .schema import ChatCompletionRequest, ChatCompletionResponse, ChatMessage

if TYPE_CHECKING:
    from collections.abc import Callable

    from wormtracker.config import OracleConfig, ResilienceConfig

log = getLogger(__name__)

COMPLETIONS_PATH = "/chat/completions"


@dataclass(slots=True)
class ChatCompletionOracle:
    config: OracleConfig = field(default_factory=get_oracle_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=default_client_factory
    )

    async def extract(self, prompt: str) -> str:
        request = ChatCompletionRequest(
            model=self.config.model,
            messages=[ChatMessage(role="user", content=prompt)],
            temperature=self.config.temperature,
        )
        async with self.client_factory(self.config.resilience) as client:
            try:
                response = await client.post(
                    COMPLETIONS_PATH, json=request.model_dump(exclude_none=True)
                )
            except httpx.HTTPError as exc:
                raise OracleError(f"oracle request failed: {exc}") from exc

        if response.is_error:
            raise OracleError(
                f"oracle returned {response.status_code}: {response.text[:200]}"
            )
        try:
            completion = ChatCompletionResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise OracleError("oracle returned an unexpected payload") from exc

        content = completion.first_content()
        if content is None:
            raise OracleError("oracle returned no completion")
        log.debug("Oracle returned %d characters", len(content))
        return content


if TYPE_CHECKING:
    from wormtracker.domain.ports import Oracle

    _oracle_check: Oracle = ChatCompletionOracle()
