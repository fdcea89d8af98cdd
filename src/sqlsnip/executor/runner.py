"""Mock SQL executor.

Stands in for a real execution backend: results are canned and chosen by
keyword presence in the statement. There is no connection management and no
error path; every call succeeds after a fixed simulated latency.
"""

import asyncio
import logging
import random
import time
from typing import Any

from ..dialects import SqlDialect
from .models import QueryResult

logger = logging.getLogger(__name__)

DEFAULT_LATENCY_SECONDS = 0.6

_USER_ROWS = [
    {"id": 1, "username": "jdoe", "email": "john@example.com", "created_at": "2023-01-01"},
    {"id": 2, "username": "asmith", "email": "alice@example.com", "created_at": "2023-01-05"},
    {"id": 3, "username": "bob_w", "email": "bob@example.com", "created_at": "2023-02-10"},
]

_CLIENT_ROWS = [
    {"client_id": "C-001", "name": "Global Corp", "plan": "Enterprise", "status": "Active"},
    {"client_id": "C-002", "name": "Tech Solutions", "plan": "Pro", "status": "Inactive"},
]

_BIGQUERY_DATASET_ROWS = [
    {"dataset_id": "analytics", "table_id": "events", "row_count": 1250000},
    {"dataset_id": "analytics", "table_id": "sessions", "row_count": 98211},
]

_SNOWFLAKE_WAREHOUSE_ROWS = [
    {"warehouse": "COMPUTE_WH", "state": "STARTED", "size": "X-Small"},
    {"warehouse": "REPORTING_WH", "state": "SUSPENDED", "size": "Medium"},
]


class MockExecutor:
    """Returns canned results keyed on substring matches.

    Args:
        latency: Simulated round-trip delay in seconds
        rng: Random source for the ``affected_rows`` count of modifications
    """

    def __init__(
        self,
        latency: float = DEFAULT_LATENCY_SECONDS,
        rng: random.Random | None = None,
    ):
        self._latency = latency
        self._rng = rng or random.Random()

    async def execute(self, sql: str, dialect: SqlDialect | str = SqlDialect.POSTGRESQL) -> QueryResult:
        """Execute ``sql`` against the mock backend.

        Args:
            sql: SQL text, any case
            dialect: Dialect label used for dialect-specific branches and messages

        Returns:
            QueryResult with ``status="success"``
        """
        dialect = SqlDialect.parse(dialect)
        start = time.perf_counter()

        await asyncio.sleep(self._latency)
        columns, rows, message = self._respond(sql.strip().lower(), dialect)

        elapsed_ms = round((time.perf_counter() - start) * 1000)
        logger.debug("Mock execution on %s took %dms (%d rows)", dialect, elapsed_ms, len(rows))

        return QueryResult(
            columns=columns,
            rows=rows,
            execution_time=elapsed_ms,
            status="success",
            message=message,
        )

    def _respond(self, lower_sql: str, dialect: SqlDialect) -> tuple[list[str], list[dict[str, Any]], str]:
        success = f"Query executed successfully on {dialect}."
        is_select = "select" in lower_sql

        if is_select and "user" in lower_sql:
            return ["id", "username", "email", "created_at"], _copy(_USER_ROWS), success

        if is_select and "client" in lower_sql:
            return ["client_id", "name", "plan", "status"], _copy(_CLIENT_ROWS), success

        if dialect is SqlDialect.BIGQUERY and is_select and "dataset" in lower_sql:
            return ["dataset_id", "table_id", "row_count"], _copy(_BIGQUERY_DATASET_ROWS), success

        if dialect is SqlDialect.SNOWFLAKE and is_select and "warehouse" in lower_sql:
            return ["warehouse", "state", "size"], _copy(_SNOWFLAKE_WAREHOUSE_ROWS), success

        if lower_sql.startswith(("update", "delete")):
            affected = self._rng.randint(1, 10)
            return ["affected_rows"], [{"affected_rows": affected}], f"Modification applied on {dialect}."

        return ["info"], [{"info": "Command acknowledged."}], success


def _copy(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [dict(row) for row in rows]
