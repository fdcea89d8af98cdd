"""OpenAI LLM provider implementation.

Uses the official OpenAI Python SDK (Chat Completions API).
Reference: https://github.com/openai/openai-python

Object schemas are sent as ``response_format`` JSON schemas. The API rejects
non-object roots, so the array schema of semantic search goes through the
prompt-instructed default instead.
"""

from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from ..base import LLMProvider
from ..models import ChatMessage, LLMResponse, StreamingResponse, TokenUsage


def _usage(raw: Any) -> TokenUsage | None:
    if raw is None:
        return None
    return TokenUsage.of(raw.prompt_tokens, raw.completion_tokens, raw.total_tokens)


class OpenAIProvider(LLMProvider):
    """OpenAI Chat Completions provider.

    Args:
        api_key: OpenAI API key
        model: Default chat model
        base_url: Optional API base URL, e.g. for a compatible gateway
        organization: Optional organization ID
        **client_kwargs: Additional kwargs for ``AsyncOpenAI``
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        organization: str | None = None,
        **client_kwargs: Any
    ):
        self._model = model
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            organization=organization,
            **client_kwargs
        )

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
        params: dict[str, Any] = {
            "model": model or self._model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "temperature": temperature,
            **kwargs
        }
        if max_tokens is not None:
            params["max_tokens"] = max_tokens
        return params

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        completion = await self._client.chat.completions.create(
            **self._request(messages, model, temperature, max_tokens, **kwargs)
        )
        return LLMResponse(
            content=completion.choices[0].message.content or "",
            model=completion.model,
            usage=_usage(completion.usage),
        )

    async def structured_completion(
        self,
        messages: list[ChatMessage],
        schema: dict[str, Any],
        schema_name: str,
        model: str | None = None,
        temperature: float = 0.2,
        **kwargs: Any
    ) -> LLMResponse:
        if schema.get("type") != "object":
            return await super().structured_completion(
                messages, schema, schema_name, model=model, temperature=temperature, **kwargs
            )
        return await self.chat_completion(
            messages,
            model=model,
            temperature=temperature,
            response_format={
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema},
            },
            **kwargs
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
        stream = await self._client.chat.completions.create(
            **params, stream=True, stream_options={"include_usage": True}
        )
        async for chunk in stream:
            # The usage chunk arrives last, with no choices
            if chunk.usage is not None:
                yield _usage(chunk.usage)
            if chunk.choices and chunk.choices[0].delta.content:
                yield chunk.choices[0].delta.content

    async def close(self) -> None:
        await self._client.close()
