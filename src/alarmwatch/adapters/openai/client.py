"""HTTP client for the OpenAI chat-completions endpoint."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from alarmwatch.adapters.http_resilience import ResilientClient
from alarmwatch.config.resilience import ResilienceConfig, RetryPolicy

from .schema import ChatCompletionRequest, ChatCompletionResponse, ChatMessage

if TYPE_CHECKING:
    from collections.abc import Callable

    from alarmwatch.config.enrichment import EnrichmentConfig

log = getLogger(__name__)

CHAT_COMPLETIONS_PATH = "chat/completions"


def openai_resilience(config: EnrichmentConfig) -> ResilienceConfig:
    # retries happen one level up, where they can be counted by the circuit breaker
    return ResilienceConfig(
        name="openai",
        base_url=config.base_url,
        timeout_seconds=config.timeout_seconds,
        retry=RetryPolicy(total=0),
        default_headers={"Authorization": f"Bearer {config.api_key}"},
    )


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class OpenAIChatClient:
    """One chat completion per call; HTTP errors propagate as ``httpx`` exceptions."""

    def __init__(
        self,
        config: EnrichmentConfig,
        *,
        client_factory: Callable[[ResilienceConfig], ResilientClient] = _default_client_factory,
    ) -> None:
        self.config = config
        self._client = client_factory(openai_resilience(config))

    async def complete(self, system_prompt: str, user_text: str) -> str | None:
        request = ChatCompletionRequest(
            model=self.config.model,
            messages=[
                ChatMessage(role="system", content=system_prompt),
                ChatMessage(role="user", content=user_text),
            ],
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        response = await self._client.post(
            CHAT_COMPLETIONS_PATH,
            json=request.model_dump(exclude_none=True),
        )
        response.raise_for_status()
        payload = ChatCompletionResponse.model_validate(response.json())
        log.debug(
            "Completion from %s used %s tokens",
            payload.model or self.config.model,
            payload.usage.total_tokens if payload.usage else "unknown",
        )
        return payload.first_content

    async def aclose(self) -> None:
        await self._client.aclose()
