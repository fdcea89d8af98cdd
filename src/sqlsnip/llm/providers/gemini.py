"""Google Gemini LLM provider implementation.

Uses the official Google GenAI SDK.
Reference: https://github.com/googleapis/python-genai

Gemini is the default provider. Structured calls use the native
``response_json_schema`` support so replies are constrained server-side.
"""

from collections.abc import AsyncIterator
from typing import Any

from google import genai
from google.genai import types

from ..base import LLMProvider
from ..models import ChatMessage, LLMResponse, StreamingResponse, TokenUsage

# Relaxed so that destructive SQL under review is not blocked as dangerous content
SAFETY_SETTINGS = [
    types.SafetySetting(category=category, threshold="BLOCK_ONLY_HIGH")
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]

GEMINI_MODELS = ("gemini-3-flash-preview", "gemini-3-pro-preview")

_ROLES = {"user": "user", "assistant": "model"}


def _usage(metadata: Any) -> TokenUsage | None:
    if not metadata:
        return None
    return TokenUsage.of(
        metadata.prompt_token_count,
        metadata.candidates_token_count,
        metadata.total_token_count,
    )


def _text(response: Any) -> str:
    """Concatenate the text parts of a response or stream chunk."""
    if not response.candidates:
        return ""
    content = response.candidates[0].content
    if not content or not content.parts:
        return ""
    return "".join(part.text for part in content.parts if getattr(part, "text", None))


class GeminiProvider(LLMProvider):
    """Gemini over the GenAI ``aio`` client.

    System messages become the ``system_instruction``; assistant turns use
    Gemini's "model" role.

    Args:
        api_key: Google AI API key
        model: Default model, one of ``GEMINI_MODELS``
        **client_kwargs: Additional kwargs for ``genai.Client``
    """

    def __init__(self, api_key: str, model: str = GEMINI_MODELS[0], **client_kwargs: Any):
        self._model = model
        self._client = genai.Client(api_key=api_key, **client_kwargs)

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
        system = "\n\n".join(m.content for m in messages if m.role == "system") or None
        contents = [
            types.Content(role=_ROLES[m.role], parts=[types.Part(text=m.content)])
            for m in messages
            if m.role != "system"
        ]
        config = types.GenerateContentConfig(
            temperature=temperature,
            system_instruction=system,
            safety_settings=SAFETY_SETTINGS,
            # SQL that looks like a function call must not trigger UNEXPECTED_TOOL_CALL
            tool_config=types.ToolConfig(
                function_calling_config=types.FunctionCallingConfig(mode="NONE")
            ),
            max_output_tokens=max_tokens,
            **kwargs
        )
        return {"model": model or self._model, "contents": contents, "config": config}

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        params = self._request(messages, model, temperature, max_tokens, **kwargs)
        response = await self._client.aio.models.generate_content(**params)
        return LLMResponse(
            content=_text(response),
            model=params["model"],
            usage=_usage(response.usage_metadata),
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
        return await self.chat_completion(
            messages,
            model=model,
            temperature=temperature,
            response_mime_type="application/json",
            response_json_schema=schema,
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
        usage = None
        async for chunk in await self._client.aio.models.generate_content_stream(**params):
            # Every chunk carries running totals; the last one wins
            usage = _usage(chunk.usage_metadata) or usage
            text = _text(chunk)
            if text:
                yield text
        if usage:
            yield usage

    async def close(self) -> None:
        # genai.Client holds no connection that needs closing
        pass
