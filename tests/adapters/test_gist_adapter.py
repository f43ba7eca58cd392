from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING

import httpx
import pytest

from wormtracker.adapters.gist import GistStore, decode_content
from wormtracker.config import (
    GistConfig,
    MissingConfigurationError,
    ResilienceConfig,
    get_gist_config,
)
from wormtracker.domain.ports import StoreError
from tests.helpers.http import make_client_factory

if TYPE_CHECKING:
    from collections.abc import Callable

BASE_URL = "https://api.github.test"
RAW_URL = "https://gist.githubusercontent.test/raw/arc_events.json"


def _store(handler: Callable[[httpx.Request], httpx.Response]) -> GistStore:
    return GistStore(
        resilience=ResilienceConfig(
            name="gist",
            base_url=BASE_URL,
            default_headers={"Authorization": "token secret"},
        ),
        client_factory=make_client_factory(handler),
    )


def test_fetch_all_decodes_files_and_follows_truncation() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        if str(request.url) == RAW_URL:
            return httpx.Response(200, text='{"arc_1": {}}')
        assert request.headers["Authorization"] == "token secret"
        return httpx.Response(
            200,
            json={
                "id": "abc",
                "files": {
                    "world_state.json": {"content": '{"arc": "1"}', "truncated": False},
                    "notes.txt": {"content": "plain text", "truncated": False},
                    "arc_events.json": {"content": "{", "truncated": True, "raw_url": RAW_URL},
                    "deleted.json": None,
                },
            },
        )

    documents = asyncio.run(_store(handler).fetch_all("abc"))

    assert documents == {
        "world_state.json": {"arc": "1"},
        "notes.txt": "plain text",
        "arc_events.json": {"arc_1": {}},
    }
    assert seen == [f"{BASE_URL}/gists/abc", RAW_URL]


def test_patch_sends_files_payload() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "abc", "files": {}})

    asyncio.run(_store(handler).patch("abc", {"world_state.json": {"content": "{}"}}))

    assert captured == {
        "method": "PATCH",
        "path": "/gists/abc",
        "body": {"files": {"world_state.json": {"content": "{}"}}},
    }


def test_create_posts_private_gist_and_returns_id() -> None:
    bodies: list[object] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/gists"
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={"id": "new-gist", "files": {}})

    store_id = asyncio.run(
        _store(handler).create("Worm RP State Tracker", {"a.json": {"content": "{}"}})
    )

    assert store_id == "new-gist"
    assert bodies == [
        {
            "description": "Worm RP State Tracker",
            "public": False,
            "files": {"a.json": {"content": "{}"}},
        }
    ]


def test_http_error_raises_store_error_with_status() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="Not Found")

    with pytest.raises(StoreError) as excinfo:
        asyncio.run(_store(handler).fetch_all("missing"))

    assert excinfo.value.status_code == 404
    assert str(excinfo.value) == "Gist fetch failed (404): Not Found"


def test_unexpected_payload_raises_store_error() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"files": "nope"})

    with pytest.raises(StoreError, match="unexpected payload"):
        asyncio.run(_store(handler).fetch_all("abc"))


def test_transport_failure_raises_store_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(StoreError, match="Gist update failed"):
        asyncio.run(_store(handler).patch("abc", {}))


def test_decode_content_keeps_non_json() -> None:
    assert decode_content('{"a": 1}') == {"a": 1}
    assert decode_content("just words") == "just words"


def test_gist_config_requires_token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)

    with pytest.raises(MissingConfigurationError, match="GITHUB_TOKEN"):
        get_gist_config()


def test_gist_config_builds_authorised_resilience(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", " ghp_example ")
    monkeypatch.delenv("WORMTRACKER_GIST_API_URL", raising=False)

    config = get_gist_config()

    assert isinstance(config, GistConfig)
    assert config.token == "ghp_example"
    assert config.resilience.base_url == "https://api.github.com"
    assert config.resilience.default_headers is not None
    assert config.resilience.default_headers["Authorization"] == "token ghp_example"
