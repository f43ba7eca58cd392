"""GitHub Gist document store adapter."""

from __future__ import annotations

from .client import GistStore, decode_content

__all__ = ["GistStore", "decode_content"]
