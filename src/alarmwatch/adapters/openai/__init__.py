"""OpenAI-backed notes enrichment adapter."""

from __future__ import annotations

from .client import OpenAIChatClient, openai_resilience
from .enricher import NotesEnrichmentClient, strip_notes_prefix
from .prompts import DISPATCH_NOTES_SYSTEM_PROMPT

__all__ = [
    "DISPATCH_NOTES_SYSTEM_PROMPT",
    "NotesEnrichmentClient",
    "OpenAIChatClient",
    "openai_resilience",
    "strip_notes_prefix",
]
