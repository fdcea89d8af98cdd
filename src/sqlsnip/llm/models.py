from collections.abc import AsyncIterator
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class TokenUsage(BaseModel):
    """Token accounting for one provider call."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def of(cls, prompt: int | None, completion: int | None, total: int | None = None) -> "TokenUsage":
        """Build from provider counters, any of which may be missing."""
        prompt, completion = prompt or 0, completion or 0
        return cls(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total or prompt + completion)


class StreamingResponse:
    """Single-use async stream of reply fragments.

    Providers feed it an iterator of text fragments, optionally followed by
    a ``TokenUsage`` item; the usage item is captured rather than yielded.
    The text seen so far is kept in ``text``.

    Usage:
        stream = await provider.chat_completion_stream(messages)
        async for chunk in stream:
            print(chunk, end="")
        print(stream.text, stream.usage)
    """

    def __init__(self, source: AsyncIterator["str | TokenUsage"]):
        self._source = source
        self._parts: list[str] = []
        self._usage: TokenUsage | None = None

    @property
    def usage(self) -> TokenUsage | None:
        """Token usage, once the provider has reported it."""
        return self._usage

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def __aiter__(self) -> "StreamingResponse":
        return self

    async def __anext__(self) -> str:
        while True:
            item = await self._source.__anext__()
            if isinstance(item, TokenUsage):
                self._usage = item
                continue
            self._parts.append(item)
            return item


class ChatMessage(BaseModel):
    """One message of a conversation sent to a provider."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


class LLMResponse(BaseModel):
    """Complete (non-streaming) provider reply."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(description="Generated text content")
    model: str = Field(description="Model that generated the response")
    usage: TokenUsage | None = None
