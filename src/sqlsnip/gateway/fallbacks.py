"""Declarative fallback table for gateway operations.

Every gateway operation degrades to a default value instead of raising. The
defaults are looked up here by operation and failure kind so that all of them
live in one place.

An empty model reply is distinguished from other failures: it still means
the provider answered, so it maps to the neutral "nothing to report" values.
Transport, parse and configuration failures map to the conservative
defaults.
"""

from collections.abc import Callable
from enum import StrEnum
from typing import Any

from .models import DbtModel, LintResult, SafetyCheck, TagSuggestion


class Operation(StrEnum):
    """Gateway request/response operations."""

    AUTO_TAG = "auto_tag"
    SAFETY_CHECK = "safety_check"
    LINT = "lint_and_format"
    SEMANTIC_SEARCH = "semantic_search"
    DBT_MODEL = "generate_dbt_model"


class FailureKind(StrEnum):
    """Why a gateway call could not produce a parsed response."""

    TRANSPORT = "transport"        # provider call raised
    EMPTY = "empty"                # provider returned no content
    PARSE = "parse"                # content was not valid JSON for the schema
    UNCONFIGURED = "unconfigured"  # no provider available


class GatewayFailure(Exception):
    """Internal signal carrying the failure kind to the fallback lookup."""

    def __init__(self, kind: FailureKind, detail: str = ""):
        super().__init__(f"{kind}: {detail}" if detail else str(kind))
        self.kind = kind
        self.detail = detail


# Fallback factories receive the SQL text of the request (empty when unused)
FallbackFactory = Callable[[str], Any]


def _for_every_kind(factory: FallbackFactory, **overrides: FallbackFactory) -> dict[FailureKind, FallbackFactory]:
    table = {kind: factory for kind in FailureKind}
    table.update({FailureKind(kind): override for kind, override in overrides.items()})
    return table


FALLBACKS: dict[Operation, dict[FailureKind, FallbackFactory]] = {
    Operation.AUTO_TAG: _for_every_kind(
        lambda code: TagSuggestion(tags=["SQL"], category="Uncategorized"),
        empty=lambda code: TagSuggestion(tags=[], category="General"),
    ),
    Operation.SAFETY_CHECK: _for_every_kind(
        lambda code: SafetyCheck(is_safe=True, warnings=[], suggestions="Could not analyze safety."),
        empty=lambda code: SafetyCheck(is_safe=True, warnings=[], suggestions="Looks good."),
    ),
    Operation.LINT: _for_every_kind(
        lambda code: LintResult(is_valid=True, errors=[], suggestions=[], formatted_code=code),
    ),
    Operation.SEMANTIC_SEARCH: _for_every_kind(
        lambda code: [],
    ),
    Operation.DBT_MODEL: _for_every_kind(
        lambda code: DbtModel(
            model_sql="-- Error generating dbt model. Please try again.",
            schema_yaml="# Error generating schema.yml. Please try again.",
        ),
    ),
}


def resolve_fallback(operation: Operation, kind: FailureKind, code: str = "") -> Any:
    """Build the default value for ``operation`` after a ``kind`` failure."""
    return FALLBACKS[operation][kind](code)
