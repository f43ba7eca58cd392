"""Chat completion oracle adapter."""

from __future__ import annotations

from .client import ChatCompletionOracle

__all__ = ["ChatCompletionOracle"]
