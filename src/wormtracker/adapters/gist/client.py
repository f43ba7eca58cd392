"""Document store backed by a private GitHub Gist."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from pydantic import ValidationError

from wormtracker.adapters.http_resilience import ResilientClient, default_client_factory
from wormtracker.config import get_gist_config
from wormtracker.domain.ports import StoreError

from .schema import GistPayload

if TYPE_CHECKING:
    from collections.abc import Callable

    from wormtracker.config import ResilienceConfig
    from wormtracker.domain.ports import StoreFiles

log = getLogger(__name__)

_ERROR_BODY_PREVIEW = 200


def _default_resilience_config() -> ResilienceConfig:
    return get_gist_config().resilience


def decode_content(content: str) -> object:
    """JSON content is decoded; anything else is kept as the raw string."""

    try:
        return json.loads(content)
    except json.JSONDecodeError:
        return content


@dataclass(slots=True)
class GistStore:
    resilience: ResilienceConfig = field(default_factory=_default_resilience_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=default_client_factory
    )

    async def fetch_all(self, store_id: str) -> dict[str, object]:
        async with self.client_factory(self.resilience) as client:
            response = await self._send(client, "fetch", "GET", f"/gists/{store_id}")
            payload = self._parse(response, "fetch")
            documents: dict[str, object] = {}
            for filename, file in payload.files.items():
                if file is None:
                    continue
                content = file.content or ""
                if file.truncated and file.raw_url:
                    log.debug("Fetching truncated gist file %s from raw_url", filename)
                    raw = await self._send(client, "fetch", "GET", file.raw_url)
                    content = raw.text
                documents[filename] = decode_content(content)
        log.info("Fetched %d documents from gist %s", len(documents), store_id)
        return documents

    async def patch(self, store_id: str, files: StoreFiles) -> None:
        body = {"files": {name: dict(file) for name, file in files.items()}}
        async with self.client_factory(self.resilience) as client:
            await self._send(client, "update", "PATCH", f"/gists/{store_id}", body=body)
        log.info("Patched %d documents on gist %s", len(files), store_id)

    async def create(self, description: str, files: StoreFiles) -> str:
        body = {
            "description": description,
            "public": False,
            "files": {name: dict(file) for name, file in files.items()},
        }
        async with self.client_factory(self.resilience) as client:
            response = await self._send(client, "create", "POST", "/gists", body=body)
            payload = self._parse(response, "create")
        log.info("Created gist %s", payload.id)
        return payload.id

    @staticmethod
    async def _send(
        client: ResilientClient,
        action: str,
        method: str,
        url: str,
        *,
        body: object | None = None,
    ) -> httpx.Response:
        try:
            if body is None:
                response = await client.request(method, url)
            else:
                response = await client.request(method, url, json=body)
        except httpx.HTTPError as exc:
            raise StoreError(f"Gist {action} failed: {exc}") from exc
        if response.is_error:
            raise StoreError(
                f"Gist {action} failed ({response.status_code}): "
                f"{response.text[:_ERROR_BODY_PREVIEW]}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _parse(response: httpx.Response, action: str) -> GistPayload:
        try:
            return GistPayload.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise StoreError(
                f"Gist {action} returned an unexpected payload",
                status_code=response.status_code,
            ) from exc


if TYPE_CHECKING:
    from wormtracker.domain.ports import DocumentStore

    _store_check: DocumentStore = GistStore()
