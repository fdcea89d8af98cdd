"""Mock SQL execution backend."""

from .models import QueryResult
from .runner import DEFAULT_LATENCY_SECONDS, MockExecutor

__all__ = ["DEFAULT_LATENCY_SECONDS", "MockExecutor", "QueryResult"]
