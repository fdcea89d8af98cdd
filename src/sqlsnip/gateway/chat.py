"""Stateful SQL assistant chat session."""

import logging
from collections.abc import AsyncIterator

from ..dialects import SqlDialect
from ..llm import ChatMessage, LLMProvider
from ..prompts import render_prompt
from .fallbacks import FailureKind, GatewayFailure

logger = logging.getLogger(__name__)

CHAT_ERROR_MESSAGE = "Sorry, I encountered an error processing your request."

# Canned prompts offered next to the chat input
QUICK_PROMPTS = {
    "Explain Snippet": "Explain exactly what this SQL snippet does in simple terms.",
    "Optimize Query": "How can I make this SQL query more performant or efficient?",
    "Refactor Style": "Refactor this query to follow best practices and consistent formatting.",
}


class ChatSession:
    """Multi-turn chat scoped to one SQL dialect.

    The system instruction is fixed when the session is (re)initialised, so
    changing the session dialect requires ``reset``. Completed exchanges are
    kept so follow-up questions carry context.

    Args:
        llm: Provider used for streaming replies
        dialect: Dialect the system instruction is scoped to
        model: Optional model override
    """

    def __init__(
        self,
        llm: LLMProvider | None,
        dialect: SqlDialect | str = SqlDialect.POSTGRESQL,
        model: str | None = None,
    ):
        self._llm = llm
        self._model = model
        self._generation = 0
        self._dialect = SqlDialect.parse(dialect)
        self._history: list[ChatMessage] = []
        self.reset(self._dialect)

    @property
    def dialect(self) -> SqlDialect:
        return self._dialect

    @property
    def generation(self) -> int:
        """Incremented by every ``reset``."""
        return self._generation

    @property
    def history(self) -> tuple[ChatMessage, ...]:
        """System instruction followed by completed user/assistant turns."""
        return tuple(self._history)

    def use_model(self, model: str | None) -> None:
        self._model = model

    def use_provider(self, llm: LLMProvider | None) -> None:
        """Swap the provider; the conversation so far is kept."""
        self._llm = llm

    def reset(self, dialect: SqlDialect | str | None = None) -> None:
        """Discard the conversation and reinitialise the system instruction."""
        if dialect is not None:
            self._dialect = SqlDialect.parse(dialect)
        self._generation += 1
        self._history = [
            ChatMessage(role="system", content=render_prompt("chat_system", dialect=self._dialect))
        ]
        logger.debug("Chat session initialised for %s", self._dialect)

    async def send(self, message: str, current_sql: str = "") -> AsyncIterator[str]:
        """Send a user message and stream the assistant's reply.

        The returned async iterator is lazy and single-use: nothing is sent
        until iteration starts. The exchange is recorded once the stream
        completes, unless the session was reset in the meantime.

        Args:
            message: The user's question
            current_sql: SQL currently in the editor, attached as context

        Yields:
            Text fragments of the reply in order

        Raises:
            GatewayFailure: If no provider is configured
            Exception: Provider errors while streaming
        """
        if self._llm is None:
            raise GatewayFailure(FailureKind.UNCONFIGURED, "no LLM provider configured")

        generation = self._generation
        user_turn = ChatMessage(role="user", content=_with_context(message, current_sql))
        stream = await self._llm.chat_completion_stream(
            [*self._history, user_turn],
            model=self._model,
        )

        async for chunk in stream:
            yield chunk

        if stream.usage:
            logger.debug("Chat reply used %d tokens", stream.usage.total_tokens)
        if generation == self._generation:
            self._history.extend([user_turn, ChatMessage(role="assistant", content=stream.text)])


def _with_context(message: str, current_sql: str) -> str:
    if not current_sql.strip():
        return message
    return f"Current SQL:\n```sql\n{current_sql.strip()}\n```\n\n{message}"
