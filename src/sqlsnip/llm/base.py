import json
from abc import ABC, abstractmethod
from typing import Any

from .models import ChatMessage, LLMResponse, StreamingResponse

_SCHEMA_INSTRUCTION = (
    "Respond with a single JSON value and nothing else. "
    "The value must conform to this JSON schema:\n{schema}"
)


class LLMProvider(ABC):
    """Async interface to one hosted language model.

    This module hides the design decision of which vendor answers the SQL
    assistant's requests. Implementations own:
    - SDK client setup and authentication
    - Mapping ``ChatMessage`` roles onto the vendor's message format
    - Schema-constrained (JSON) output, natively where the vendor supports it
    - Reporting ``TokenUsage``

    Provider errors propagate; callers decide how to degrade. Usable as an
    async context manager that closes the client on exit:
        async with provider:
            reply = await provider.chat_completion(messages)
    """

    @property
    @abstractmethod
    def model(self) -> str:
        """Model used when a call does not name one."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        """Return the complete reply to ``messages``.

        Extra keyword arguments are passed to the vendor request unchanged.
        """

    @abstractmethod
    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        """Return the reply to ``messages`` as a stream of text fragments.

        ``usage`` on the returned stream is filled in once iteration ends.
        """

    async def structured_completion(
        self,
        messages: list[ChatMessage],
        schema: dict[str, Any],
        schema_name: str,
        model: str | None = None,
        temperature: float = 0.2,
        **kwargs: Any
    ) -> LLMResponse:
        """Ask for a reply whose content is JSON conforming to ``schema``.

        By default the schema is prepended as a system instruction; vendors
        with native structured output override this.

        Args:
            messages: Conversation history
            schema: JSON schema the reply must satisfy
            schema_name: Short identifier for the schema
            model: Model to use (None uses the provider default)
            temperature: Sampling temperature
        """
        instruction = ChatMessage(
            role="system",
            content=_SCHEMA_INSTRUCTION.format(schema=json.dumps(schema, indent=2)),
        )
        return await self.chat_completion(
            [instruction, *messages],
            model=model,
            temperature=temperature,
            **kwargs
        )

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying client."""

    async def __aenter__(self) -> "LLMProvider":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Close the client, ignoring httpx/anyio's "Event loop is closed" race.

        See https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise
