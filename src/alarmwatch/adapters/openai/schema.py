"""Pydantic models describing the OpenAI chat-completions payloads we use."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class OpenAIBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ChatMessage(OpenAIBaseModel):
    role: Literal["system", "user", "assistant"]
    content: str | None = None


class ChatChoice(OpenAIBaseModel):
    index: int = 0
    message: ChatMessage
    finish_reason: str | None = None


class CompletionUsage(OpenAIBaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionRequest(OpenAIBaseModel):
    model: str
    messages: list[ChatMessage]
    temperature: float = 0.2
    max_tokens: int | None = Field(default=None)


class ChatCompletionResponse(OpenAIBaseModel):
    id: str | None = None
    model: str | None = None
    choices: list[ChatChoice]
    usage: CompletionUsage | None = None

    @property
    def first_content(self) -> str | None:
        if not self.choices:
            return None
        content = self.choices[0].message.content
        if content is None:
            return None
        return content.strip() or None
