"""Pytest configuration and shared fixtures."""
import json
from collections.abc import AsyncIterator
from datetime import datetime, timedelta
from typing import Any

import pytest

from sqlsnip.executor import MockExecutor
from sqlsnip.gateway import ChatSession, SqlIntelligence
from sqlsnip.llm import ChatMessage, LLMProvider, LLMResponse, StreamingResponse
from sqlsnip.state import SnippetController, Store, initial_state

# Replies consumed by the AI self-test checks t4..t7, in suite order
PASSING_REPLIES = [
    {"isSafe": False, "warnings": ["No WHERE clause"], "suggestions": "Add WHERE"},
    {"isValid": True, "errors": [], "suggestions": [], "formattedCode": "SELECT *\nFROM users"},
    {"modelSql": "{{ config(materialized='table') }}\nselect 1", "schemaYaml": "version: 2\nmodels: []"},
    {"tags": ["SELECT", "transactions"], "category": "Finance"},
]


class FakeLLMProvider(LLMProvider):
    """Provider that replays scripted replies.

    Each entry in ``replies`` is consumed by one call: a string or dict/list
    (sent as JSON) becomes the response content, an exception is raised.
    Streaming calls consume ``chunks`` lists in the same way.
    """

    def __init__(
        self,
        replies: list[Any] | None = None,
        chunks: list[Any] | None = None,
        model: str = "fake-model",
    ):
        self._replies = list(replies or [])
        self._chunks = list(chunks or [])
        self._model = model
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    @property
    def model(self) -> str:
        return self._model

    def queue(self, *replies: Any) -> None:
        self._replies.extend(replies)

    def queue_stream(self, *chunk_lists: Any) -> None:
        self._chunks.extend(chunk_lists)

    async def chat_completion(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> LLMResponse:
        self.calls.append({"messages": messages, "model": model, **kwargs})
        reply = self._replies.pop(0) if self._replies else ""
        if isinstance(reply, BaseException):
            raise reply
        if not isinstance(reply, str):
            reply = json.dumps(reply)
        return LLMResponse(content=reply, model=model or self._model)

    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        **kwargs: Any
    ) -> StreamingResponse:
        self.calls.append({"messages": messages, "model": model, "stream": True})
        script = self._chunks.pop(0) if self._chunks else []
        if isinstance(script, BaseException):
            raise script

        async def generate() -> AsyncIterator[str]:
            for chunk in script:
                if isinstance(chunk, BaseException):
                    raise chunk
                yield chunk

        return StreamingResponse(generate())

    async def close(self) -> None:
        self.closed = True


class FixedClock:
    """Clock that advances one second per reading."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 5, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def fake_llm():
    """Return an empty scripted provider."""
    return FakeLLMProvider()


@pytest.fixture
def intelligence(fake_llm):
    """Return a gateway backed by the scripted provider."""
    return SqlIntelligence(fake_llm)


@pytest.fixture
def executor():
    """Return a mock executor with a short latency."""
    return MockExecutor(latency=0.01)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store(clock):
    """Return a store seeded with the default snippets."""
    return Store(initial_state(now=clock.now))


@pytest.fixture
def controller(store, intelligence, executor, fake_llm, clock):
    """Return a controller wired to the scripted provider."""
    return SnippetController(
        store,
        intelligence,
        executor,
        chat=ChatSession(fake_llm, store.state.config.dialect),
        clock=clock,
    )

