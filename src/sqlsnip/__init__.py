"""
sqlsnip: a SQL snippet manager whose tagging, safety review, linting, search
and dbt export are delegated to an LLM, with a mock query executor.

Each module hides a specific design decision: ``llm`` the provider,
``gateway`` the prompts and fallbacks, ``executor`` the execution backend,
``state`` the session model and ``ui`` the presentation.
"""

__version__ = "0.1.0"

from .dialects import SqlDialect
from .executor import MockExecutor, QueryResult
from .gateway import ChatSession, SqlIntelligence
from .state import AppState, SnippetController, Store, initial_state

__all__ = [
    "SqlDialect",
    "MockExecutor",
    "QueryResult",
    "ChatSession",
    "SqlIntelligence",
    "AppState",
    "SnippetController",
    "Store",
    "initial_state",
]
