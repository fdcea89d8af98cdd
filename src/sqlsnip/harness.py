"""Self-test harness exercising the executor and the LLM gateway.

The AI checks talk to the configured provider, so they only pass against a
real model; without one the gateway fallbacks make them fail.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal

from .dialects import SqlDialect
from .executor import MockExecutor
from .gateway import SqlIntelligence

logger = logging.getLogger(__name__)

Category = Literal["Execution", "AI", "Logic"]


class CheckFailed(AssertionError):
    """Raised by a harness check whose expectation did not hold."""


@dataclass(frozen=True)
class HarnessCase:
    id: str
    category: Category
    name: str
    description: str


@dataclass(frozen=True)
class HarnessOutcome:
    case: HarnessCase
    passed: bool
    duration_ms: float
    error: str | None = None


HARNESS_SUITE: tuple[HarnessCase, ...] = (
    HarnessCase("t1", "Execution", "Dialect: PostgreSQL", "Verify standard execution on PostgreSQL mock."),
    HarnessCase("t2", "Execution", "Dialect: BigQuery", "Verify BigQuery specific dataset result mocking."),
    HarnessCase("t3", "Execution", "SQL Injection Mock", "Ensure the runner handles unexpected or dangerous strings."),
    HarnessCase("t4", "AI", "Safety: Dangerous Update", "Test AI detection of missing WHERE clauses."),
    HarnessCase("t5", "AI", "Linting: Case Sensitivity", "Verify AI suggests uppercase keywords for better style."),
    HarnessCase("t6", "AI", "dbt: Model Generation", "Ensure dbt model export generates Jinja config blocks."),
    HarnessCase("t7", "AI", "Auto-Tagging", "Verify logical category grouping for finance-related SQL."),
    HarnessCase("t8", "Logic", "Performance Timing", "Ensure execution time is calculated correctly."),
)

Check = Callable[[SqlIntelligence, MockExecutor], Awaitable[None]]
_CHECKS: dict[str, Check] = {}


def _check(case_id: str) -> Callable[[Check], Check]:
    def register(func: Check) -> Check:
        _CHECKS[case_id] = func
        return func
    return register


def _expect(condition: bool, message: str) -> None:
    if not condition:
        raise CheckFailed(message)


@_check("t1")
async def _postgres_execution(intelligence: SqlIntelligence, executor: MockExecutor) -> None:
    result = await executor.execute("SELECT * FROM users", SqlDialect.POSTGRESQL)
    _expect(result.status == "success" and "PostgreSQL" in result.message, "Dialect mismatch in result")


@_check("t2")
async def _bigquery_execution(intelligence: SqlIntelligence, executor: MockExecutor) -> None:
    result = await executor.execute("SELECT * FROM dataset.table", SqlDialect.BIGQUERY)
    _expect(any(row.get("dataset_id") for row in result.rows), "BigQuery specific rows not returned")


@_check("t3")
async def _injection_string(intelligence: SqlIntelligence, executor: MockExecutor) -> None:
    result = await executor.execute("SELECT * FROM users WHERE name = '' OR 1=1; DROP TABLE users; --")
    _expect(result.status == "success", "Runner did not survive a dangerous string")


@_check("t4")
async def _dangerous_update(intelligence: SqlIntelligence, executor: MockExecutor) -> None:
    check = await intelligence.check_safety('UPDATE users SET name = "bob"', SqlDialect.MYSQL)
    _expect(not check.is_safe, "Dangerous update was marked as safe")


@_check("t5")
async def _lint_uppercases_keywords(intelligence: SqlIntelligence, executor: MockExecutor) -> None:
    result = await intelligence.lint_and_format("select * from users", SqlDialect.POSTGRESQL)
    _expect("SELECT" in result.formatted_code, "Keywords were not uppercased")


@_check("t6")
async def _dbt_structure(intelligence: SqlIntelligence, executor: MockExecutor) -> None:
    model = await intelligence.generate_dbt_model("TestModel", "SELECT 1", SqlDialect.SNOWFLAKE)
    _expect("{{" in model.model_sql and "version" in model.schema_yaml, "Invalid dbt structure")


@_check("t7")
async def _finance_category(intelligence: SqlIntelligence, executor: MockExecutor) -> None:
    suggestion = await intelligence.auto_tag("SELECT amount FROM transactions", SqlDialect.POSTGRESQL)
    _expect(
        bool(suggestion.category) and suggestion.category != "Uncategorized",
        "AI failed to categorize financial SQL",
    )


@_check("t8")
async def _timing(intelligence: SqlIntelligence, executor: MockExecutor) -> None:
    result = await executor.execute("SELECT 1", SqlDialect.SQLITE)
    _expect(result.execution_time > 0, "Timing calculation failed")


async def run_case(
    case: HarnessCase,
    intelligence: SqlIntelligence,
    executor: MockExecutor,
) -> HarnessOutcome:
    """Run one check and time it; any exception counts as a failure."""
    start = time.perf_counter()
    try:
        check = _CHECKS.get(case.id)
        if check is None:
            raise CheckFailed(f"No check registered for {case.id}")
        await check(intelligence, executor)
    except Exception as e:
        duration = (time.perf_counter() - start) * 1000
        logger.debug("Harness case %s failed: %s", case.id, e)
        return HarnessOutcome(case=case, passed=False, duration_ms=duration, error=str(e))
    return HarnessOutcome(case=case, passed=True, duration_ms=(time.perf_counter() - start) * 1000)


async def run_suite(
    intelligence: SqlIntelligence,
    executor: MockExecutor,
    cases: tuple[HarnessCase, ...] = HARNESS_SUITE,
    on_outcome: Callable[[HarnessOutcome], None] | None = None,
) -> list[HarnessOutcome]:
    """Run ``cases`` sequentially, reporting each outcome as it completes."""
    outcomes = []
    for case in cases:
        outcome = await run_case(case, intelligence, executor)
        outcomes.append(outcome)
        if on_outcome is not None:
            on_outcome(outcome)
    return outcomes
