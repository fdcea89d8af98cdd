"""Anthropic Claude LLM provider implementation.

Uses the official Anthropic Python SDK (Messages API).
Reference: https://github.com/anthropics/anthropic-sdk-python

Structured calls rely on the prompt-instructed JSON default from the base class.
"""

from collections.abc import AsyncIterator
from typing import Any

from anthropic import AsyncAnthropic

from ..base import LLMProvider
from ..models import ChatMessage, LLMResponse, StreamingResponse, TokenUsage

# The Messages API requires an explicit output limit
DEFAULT_MAX_TOKENS = 4096


def _split_system(messages: list[ChatMessage]) -> tuple[str | None, list[dict[str, str]]]:
    """Pull system messages out into the separate ``system`` field."""
    system = [m.content for m in messages if m.role == "system"]
    turns = [{"role": m.role, "content": m.content} for m in messages if m.role != "system"]
    return ("\n\n".join(system) or None), turns


class AnthropicProvider(LLMProvider):
    """Claude over the Messages API.

    Args:
        api_key: Anthropic API key
        model: Default model
        base_url: Optional API base URL
        **client_kwargs: Additional kwargs for ``AsyncAnthropic``
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        base_url: str | None = None,
        **client_kwargs: Any
    ):
        self._model = model
        self._client = AsyncAnthropic(api_key=api_key, base_url=base_url, **client_kwargs)

    @property
    def model(self) -> str:
        return self._model

    def _request(
        self,
        messages: list[ChatMessage],
        model: str | None,
        temperature: float,
        max_tokens: int | None,
        **kwargs: Any
    ) -> dict[str, Any]:
        system, turns = _split_system(messages)
        params: dict[str, Any] = {
            "model": model or self._model,
            "messages": turns,
            "temperature": temperature,
            "max_tokens": max_tokens or DEFAULT_MAX_TOKENS,
            **kwargs
        }
        if system:
            params["system"] = system
        return params

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        message = await self._client.messages.create(
            **self._request(messages, model, temperature, max_tokens, **kwargs)
        )
        usage = None
        if message.usage:
            usage = TokenUsage.of(message.usage.input_tokens, message.usage.output_tokens)
        return LLMResponse(
            content="".join(block.text for block in message.content if hasattr(block, "text")),
            model=message.model,
            usage=usage,
        )

    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        params = self._request(messages, model, temperature, max_tokens, **kwargs)
        return StreamingResponse(self._fragments(params))

    async def _fragments(self, params: dict[str, Any]) -> AsyncIterator[str | TokenUsage]:
        # Input tokens come with message_start, output tokens with message_delta
        prompt_tokens = completion_tokens = 0
        async with self._client.messages.stream(**params) as stream:
            async for event in stream:
                kind = getattr(event, "type", None)
                if kind == "message_start":
                    prompt_tokens = event.message.usage.input_tokens
                elif kind == "message_delta" and event.usage is not None:
                    completion_tokens = event.usage.output_tokens
                elif kind == "content_block_delta" and hasattr(event.delta, "text"):
                    yield event.delta.text
        yield TokenUsage.of(prompt_tokens, completion_tokens)

    async def close(self) -> None:
        await self._client.close()
