"""Tests for the safety gate in front of execution."""
import pytest
from hypothesis import given
from hypothesis import strategies as st

from sqlsnip.gateway import SafetyCheck
from sqlsnip.state import MODIFICATION_KEYWORDS, GatePhase, SafetyGate, is_modification_query


class TestIsModificationQuery:
    """Tests for keyword prefix detection."""

    @pytest.mark.parametrize("sql", [
        "UPDATE users SET a = 1",
        "delete from users",
        "   insert into t values (1)",
        "\nDrop table users",
        "TRUNCATE logs",
    ])
    def test_detects_modifications(self, sql):
        assert is_modification_query(sql)

    @pytest.mark.parametrize("sql", [
        "SELECT * FROM users",
        "WITH x AS (DELETE FROM t) SELECT 1",
        "-- UPDATE\nSELECT 1",
        "",
        "CREATE TABLE t (id INT)",
    ])
    def test_ignores_other_statements(self, sql):
        assert not is_modification_query(sql)

    @given(keyword=st.sampled_from(MODIFICATION_KEYWORDS), rest=st.text(max_size=40), pad=st.sampled_from(["", " ", "\t\n"]))
    def test_any_casing_of_a_keyword_prefix(self, keyword, rest, pad):
        """Property test: a keyword prefix is detected regardless of case."""
        assert is_modification_query(pad + keyword.lower() + rest)
        assert is_modification_query(pad + keyword + rest)


class StubIntelligence:
    """Gateway stand-in returning a fixed assessment or raising."""

    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = 0

    async def check_safety(self, code, dialect):
        self.calls += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class TestSafetyGate:
    """Tests for gate decisions."""

    async def test_select_runs_without_assessment(self):
        stub = StubIntelligence(SafetyCheck(is_safe=False))
        decision = await SafetyGate(stub).evaluate("SELECT 1")

        assert decision.phase is GatePhase.RUNNING
        assert decision.assessment is None
        assert stub.calls == 0

    async def test_skip_check_bypasses_assessment(self):
        stub = StubIntelligence(SafetyCheck(is_safe=False))
        decision = await SafetyGate(stub).evaluate("DELETE FROM t", skip_check=True)

        assert decision.phase is GatePhase.RUNNING
        assert stub.calls == 0

    async def test_unsafe_assessment_blocks(self):
        check = SafetyCheck(is_safe=False, warnings=["No WHERE clause"], suggestions="Add WHERE")
        decision = await SafetyGate(StubIntelligence(check)).evaluate("DELETE FROM t")

        assert decision.blocked
        assert decision.assessment == check

    async def test_warnings_alone_block(self):
        check = SafetyCheck(is_safe=True, warnings=["Touches many rows"])
        decision = await SafetyGate(StubIntelligence(check)).evaluate("UPDATE t SET a = 1 WHERE b > 0")

        assert decision.blocked

    async def test_clean_assessment_runs(self):
        check = SafetyCheck(is_safe=True, warnings=[], suggestions="Looks good.")
        decision = await SafetyGate(StubIntelligence(check)).evaluate("UPDATE t SET a = 1 WHERE id = 2")

        assert decision.phase is GatePhase.RUNNING
        assert decision.assessment == check

    async def test_assessment_error_fails_open(self):
        decision = await SafetyGate(StubIntelligence(RuntimeError("boom"))).evaluate("DROP TABLE t")

        assert decision.phase is GatePhase.RUNNING
        assert decision.assessment is None
