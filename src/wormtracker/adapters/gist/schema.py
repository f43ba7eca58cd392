"""Pydantic models describing the GitHub Gists API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class GistBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class GistFilePayload(GistBaseModel):
    filename: str | None = None
    content: str | None = None
    truncated: bool = False
    raw_url: str | None = None


class GistPayload(GistBaseModel):
    id: str
    description: str | None = None
    files: dict[str, GistFilePayload | None] = {}
