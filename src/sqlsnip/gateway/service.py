"""LLM-backed SQL intelligence operations.

Each operation renders a prompt, requests a schema-constrained JSON reply,
parses it and, on any failure, returns the default from the fallback table.
Operations are independent of each other and never retry.
"""

import logging
import re
from collections.abc import Callable, Sequence
from typing import Any, Protocol, TypeVar

from pydantic import TypeAdapter

from ..dialects import SqlDialect
from ..llm import ChatMessage, GeminiProvider, LLMProvider
from ..prompts import render_prompt
from .fallbacks import FailureKind, GatewayFailure, Operation, resolve_fallback
from .models import (
    DBT_SCHEMA,
    LINT_SCHEMA,
    SAFETY_SCHEMA,
    SEARCH_SCHEMA,
    TAG_SCHEMA,
    DbtModel,
    LintResult,
    SafetyCheck,
    TagSuggestion,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)
_ID_LIST = TypeAdapter(list[str])


class SearchCandidate(Protocol):
    """Anything with the snippet fields semantic search needs."""

    id: str
    name: str
    code: str
    tags: Sequence[str]


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    match = _FENCE_RE.match(text)
    return match.group(1) if match else text.strip()


class SqlIntelligence:
    """Gateway to the external LLM for SQL snippet tasks.

    Hidden design decisions:
    - Prompt wording (see ``sqlsnip/prompts``)
    - Response schemas and their wire field names
    - How failures degrade to defaults (see ``fallbacks.py``)

    Args:
        llm: Provider used for all requests; ``None`` makes every operation
            return its fallback
        model: Model override passed on each request
    """

    def __init__(self, llm: LLMProvider | None, model: str | None = None):
        self._llm = llm
        self._model = model

    @property
    def llm(self) -> LLMProvider | None:
        return self._llm

    @property
    def model(self) -> str | None:
        """Model used for requests, falling back to the provider default."""
        if self._model:
            return self._model
        return self._llm.model if self._llm is not None else None

    def use_provider(self, llm: LLMProvider | None, model: str | None = None) -> None:
        """Replace the provider, e.g. after the API keys changed."""
        self._llm = llm
        self._model = model

    def use_gemini_model(self, model: str) -> None:
        """Switch the Gemini model; ignored for other providers."""
        if isinstance(self._llm, GeminiProvider):
            self._model = model

    async def auto_tag(self, code: str, dialect: SqlDialect | str = SqlDialect.POSTGRESQL) -> TagSuggestion:
        """Suggest technical tags and a grouping category for ``code``."""
        prompt = render_prompt("auto_tag", code=code, dialect=SqlDialect.parse(dialect))
        return await self._run(
            Operation.AUTO_TAG, prompt, TAG_SCHEMA, TagSuggestion.model_validate_json, code
        )

    async def check_safety(self, code: str, dialect: SqlDialect | str = SqlDialect.POSTGRESQL) -> SafetyCheck:
        """Assess whether executing ``code`` is risky."""
        prompt = render_prompt("safety_check", code=code, dialect=SqlDialect.parse(dialect))
        return await self._run(
            Operation.SAFETY_CHECK, prompt, SAFETY_SCHEMA, SafetyCheck.model_validate_json, code
        )

    async def lint_and_format(self, code: str, dialect: SqlDialect | str = SqlDialect.POSTGRESQL) -> LintResult:
        """Lint ``code`` and return it reformatted.

        On failure the original code is returned unchanged as ``formatted_code``.
        """
        prompt = render_prompt("lint_format", code=code, dialect=SqlDialect.parse(dialect))
        return await self._run(
            Operation.LINT, prompt, LINT_SCHEMA, LintResult.model_validate_json, code
        )

    async def semantic_search(self, query: str, snippets: Sequence[SearchCandidate]) -> list[str]:
        """Rank snippets against a natural-language query.

        Returns:
            Matching snippet IDs, most relevant first. Unknown IDs returned by
            the model are dropped and duplicates removed.
        """
        if not snippets:
            return []

        context = "\n---\n".join(
            f"ID: {s.id}\nName: {s.name}\nCode: {s.code}\nTags: {','.join(s.tags)}"
            for s in snippets
        )
        prompt = render_prompt("semantic_search", query=query, snippets=context)
        ids = await self._run(
            Operation.SEMANTIC_SEARCH, prompt, SEARCH_SCHEMA, _ID_LIST.validate_json
        )

        known = {s.id for s in snippets}
        ranked: list[str] = []
        for snippet_id in ids:
            if snippet_id in known and snippet_id not in ranked:
                ranked.append(snippet_id)
        return ranked

    async def generate_dbt_model(
        self,
        model_name: str,
        code: str,
        dialect: SqlDialect | str = SqlDialect.POSTGRESQL,
    ) -> DbtModel:
        """Convert ``code`` into a dbt model file plus schema.yml."""
        prompt = render_prompt(
            "dbt_model", model_name=model_name, code=code, dialect=SqlDialect.parse(dialect)
        )
        return await self._run(
            Operation.DBT_MODEL, prompt, DBT_SCHEMA, DbtModel.model_validate_json, code
        )

    async def _run(
        self,
        operation: Operation,
        prompt: str,
        schema: dict[str, Any],
        parse: Callable[[str], T],
        code: str = "",
    ) -> T:
        try:
            return await self._request(operation, prompt, schema, parse)
        except GatewayFailure as failure:
            logger.warning("%s failed (%s), using fallback: %s", operation, failure.kind, failure.detail)
            return resolve_fallback(operation, failure.kind, code)

    async def _request(
        self,
        operation: Operation,
        prompt: str,
        schema: dict[str, Any],
        parse: Callable[[str], T],
    ) -> T:
        if self._llm is None:
            raise GatewayFailure(FailureKind.UNCONFIGURED, "no LLM provider configured")

        try:
            response = await self._llm.structured_completion(
                [ChatMessage(role="user", content=prompt)],
                schema=schema,
                schema_name=operation.value,
                model=self._model,
            )
        except Exception as e:
            raise GatewayFailure(FailureKind.TRANSPORT, str(e)) from e

        if response.usage:
            logger.debug("%s used %d tokens", operation, response.usage.total_tokens)
        text = strip_code_fence(response.content)
        if not text:
            raise GatewayFailure(FailureKind.EMPTY, "empty response")

        try:
            return parse(text)
        except ValueError as e:
            raise GatewayFailure(FailureKind.PARSE, str(e)) from e
