"""Tests for the self-test harness."""
from conftest import PASSING_REPLIES, FakeLLMProvider
from sqlsnip.executor import MockExecutor
from sqlsnip.gateway import SqlIntelligence
from sqlsnip.harness import HARNESS_SUITE, HarnessCase, run_case, run_suite


class TestHarnessSuite:

    def test_suite_lists_eight_cases(self):
        assert [case.id for case in HARNESS_SUITE] == [f"t{i}" for i in range(1, 9)]
        assert {case.category for case in HARNESS_SUITE} == {"Execution", "AI", "Logic"}

    async def test_all_pass_against_a_cooperative_model(self):
        intelligence = SqlIntelligence(FakeLLMProvider(replies=list(PASSING_REPLIES)))
        reported = []

        outcomes = await run_suite(intelligence, MockExecutor(latency=0.01), on_outcome=reported.append)

        assert [o.passed for o in outcomes] == [True] * 8, [o.error for o in outcomes]
        assert reported == outcomes

    async def test_ai_checks_fail_on_fallbacks(self):
        outcomes = await run_suite(SqlIntelligence(None), MockExecutor(latency=0.01))

        failed = {o.case.id for o in outcomes if not o.passed}
        assert failed == {"t4", "t5", "t6", "t7"}

    async def test_failure_carries_message_and_duration(self):
        case = next(c for c in HARNESS_SUITE if c.id == "t4")

        outcome = await run_case(case, SqlIntelligence(None), MockExecutor(latency=0))

        assert not outcome.passed
        assert outcome.error == "Dangerous update was marked as safe"
        assert outcome.duration_ms >= 0

    async def test_unregistered_case_fails(self):
        case = HarnessCase("t99", "Logic", "Missing", "No check registered")

        outcome = await run_case(case, SqlIntelligence(None), MockExecutor(latency=0))

        assert not outcome.passed
        assert "t99" in outcome.error
