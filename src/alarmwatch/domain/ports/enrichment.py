"""Ports for the best-effort notes enrichment service."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class CompletionService(Protocol):
    """Single text-completion call against an external model.

    Implementations raise ``httpx.HTTPStatusError`` for HTTP failures and
    ``httpx.TransportError`` subclasses for network failures so callers can
    classify them.
    """

    async def complete(self, system_prompt: str, user_text: str) -> str | None: ...


@runtime_checkable
class NotesEnricher(Protocol):
    """Turn raw dispatch notes into a readable description; never raises."""

    async def transform(self, notes: str) -> str: ...


__all__ = ["CompletionService", "NotesEnricher"]
