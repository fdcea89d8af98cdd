"""Tests for the LLM gateway operations and their fallbacks."""
from types import SimpleNamespace

import pytest

from conftest import FakeLLMProvider
from sqlsnip.dialects import SqlDialect
from sqlsnip.gateway import (
    FALLBACKS,
    DbtModel,
    FailureKind,
    LintResult,
    Operation,
    SafetyCheck,
    SqlIntelligence,
    TagSuggestion,
    resolve_fallback,
    strip_code_fence,
)
from sqlsnip.prompts import clear_cache, load_prompt, render_prompt


def snippet(snippet_id, name="Snippet", code="SELECT 1", tags=()):
    return SimpleNamespace(id=snippet_id, name=name, code=code, tags=tags)


class TestStripCodeFence:

    def test_strips_json_fence(self):
        assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_bare_fence(self):
        assert strip_code_fence("```\n[]\n```") == "[]"

    def test_leaves_plain_text(self):
        assert strip_code_fence('  {"a": 1} ') == '{"a": 1}'


class TestAutoTag:

    async def test_parses_reply(self, fake_llm, intelligence):
        fake_llm.queue({"tags": ["SELECT", "payments"], "category": "Financial Reports"})

        result = await intelligence.auto_tag("SELECT amount FROM payments", SqlDialect.SNOWFLAKE)

        assert result == TagSuggestion(tags=["SELECT", "payments"], category="Financial Reports")
        prompt = fake_llm.calls[0]["messages"][-1].content
        assert "Snowflake" in prompt
        assert "SELECT amount FROM payments" in prompt

    async def test_requests_schema(self, fake_llm, intelligence):
        fake_llm.queue({"tags": [], "category": "General"})

        await intelligence.auto_tag("SELECT 1")

        messages = fake_llm.calls[0]["messages"]
        assert messages[0].role == "system"
        assert '"category"' in messages[0].content

    async def test_transport_error_falls_back(self, fake_llm, intelligence):
        fake_llm.queue(ConnectionError("network down"))

        result = await intelligence.auto_tag("SELECT 1")

        assert result == TagSuggestion(tags=["SQL"], category="Uncategorized")

    async def test_empty_reply_falls_back_to_general(self, fake_llm, intelligence):
        fake_llm.queue("")

        result = await intelligence.auto_tag("SELECT 1")

        assert result == TagSuggestion(tags=[], category="General")

    async def test_malformed_reply_falls_back(self, fake_llm, intelligence):
        fake_llm.queue("not json at all")

        result = await intelligence.auto_tag("SELECT 1")

        assert result.category == "Uncategorized"


class TestCheckSafety:

    async def test_parses_camel_case_reply(self, fake_llm, intelligence):
        fake_llm.queue({"isSafe": False, "warnings": ["No WHERE clause"], "suggestions": "Add a WHERE"})

        result = await intelligence.check_safety("DELETE FROM users", SqlDialect.MYSQL)

        assert not result.is_safe
        assert result.warnings == ["No WHERE clause"]
        assert result.requires_approval

    async def test_fenced_reply_is_accepted(self, fake_llm, intelligence):
        fake_llm.queue('```json\n{"isSafe": true, "warnings": [], "suggestions": ""}\n```')

        result = await intelligence.check_safety("UPDATE t SET a = 1 WHERE id = 1")

        assert result.is_safe
        assert not result.requires_approval

    async def test_failure_is_permissive(self, fake_llm, intelligence):
        fake_llm.queue(TimeoutError())

        result = await intelligence.check_safety("DROP TABLE users")

        assert result == SafetyCheck(is_safe=True, warnings=[], suggestions="Could not analyze safety.")

    async def test_empty_reply_looks_good(self, fake_llm, intelligence):
        fake_llm.queue("   ")

        result = await intelligence.check_safety("DROP TABLE users")

        assert result.suggestions == "Looks good."


class TestLintAndFormat:

    async def test_parses_reply(self, fake_llm, intelligence):
        fake_llm.queue({
            "isValid": True,
            "errors": [],
            "suggestions": ["Uppercase keywords"],
            "formattedCode": "SELECT *\nFROM users;",
        })

        result = await intelligence.lint_and_format("select * from users")

        assert result.formatted_code == "SELECT *\nFROM users;"
        assert result.suggestions == ["Uppercase keywords"]

    async def test_failure_returns_original_code(self, fake_llm, intelligence):
        fake_llm.queue({"isValid": True})

        result = await intelligence.lint_and_format("select 1")

        assert result == LintResult(is_valid=True, errors=[], suggestions=[], formatted_code="select 1")


class TestSemanticSearch:

    async def test_ranks_known_ids(self, fake_llm, intelligence):
        fake_llm.queue(["2", "1"])

        ids = await intelligence.semantic_search("billing", [snippet("1"), snippet("2")])

        assert ids == ["2", "1"]

    async def test_drops_unknown_and_duplicate_ids(self, fake_llm, intelligence):
        fake_llm.queue(["9", "1", "1"])

        ids = await intelligence.semantic_search("users", [snippet("1"), snippet("2")])

        assert ids == ["1"]

    async def test_context_lists_every_snippet(self, fake_llm, intelligence):
        fake_llm.queue([])

        await intelligence.semantic_search("users", [
            snippet("a", name="Active Users", tags=("SELECT", "users")),
            snippet("b", name="Plans"),
        ])

        prompt = fake_llm.calls[0]["messages"][-1].content
        assert "ID: a" in prompt and "ID: b" in prompt
        assert "Tags: SELECT,users" in prompt

    async def test_no_snippets_skips_request(self, fake_llm, intelligence):
        assert await intelligence.semantic_search("anything", []) == []
        assert fake_llm.calls == []

    async def test_failure_returns_no_matches(self, fake_llm, intelligence):
        fake_llm.queue({"ids": ["1"]})

        assert await intelligence.semantic_search("users", [snippet("1")]) == []


class TestGenerateDbtModel:

    async def test_parses_reply(self, fake_llm, intelligence):
        fake_llm.queue({"modelSql": "{{ config(materialized='view') }}\nSELECT 1", "schemaYaml": "version: 2"})

        model = await intelligence.generate_dbt_model("stg_users", "SELECT 1", SqlDialect.BIGQUERY)

        assert model.model_sql.startswith("{{ config")
        assert model.schema_yaml == "version: 2"
        assert "stg_users" in fake_llm.calls[0]["messages"][-1].content

    async def test_failure_returns_error_placeholders(self, fake_llm, intelligence):
        fake_llm.queue(RuntimeError("quota"))

        model = await intelligence.generate_dbt_model("m", "SELECT 1")

        assert model == DbtModel(
            model_sql="-- Error generating dbt model. Please try again.",
            schema_yaml="# Error generating schema.yml. Please try again.",
        )


class TestUnconfigured:
    """Without a provider every operation returns its fallback."""

    async def test_all_operations_fall_back(self):
        intelligence = SqlIntelligence(None)

        assert (await intelligence.auto_tag("SELECT 1")).category == "Uncategorized"
        assert (await intelligence.check_safety("DROP TABLE t")).is_safe
        assert (await intelligence.lint_and_format("select 1")).formatted_code == "select 1"
        assert await intelligence.semantic_search("q", [snippet("1")]) == []
        assert (await intelligence.generate_dbt_model("m", "SELECT 1")).model_sql.startswith("-- Error")


class TestFallbackTable:

    @pytest.mark.parametrize("operation", list(Operation))
    def test_every_kind_is_covered(self, operation):
        assert set(FALLBACKS[operation]) == set(FailureKind)

    def test_lint_fallback_echoes_code(self):
        result = resolve_fallback(Operation.LINT, FailureKind.PARSE, "select 2")

        assert result.formatted_code == "select 2"

    def test_fallbacks_are_fresh_values(self):
        first = resolve_fallback(Operation.SEMANTIC_SEARCH, FailureKind.TRANSPORT)
        first.append("x")

        assert resolve_fallback(Operation.SEMANTIC_SEARCH, FailureKind.TRANSPORT) == []


class TestModelSelection:

    async def test_model_override_is_sent(self):
        llm = FakeLLMProvider(replies=[{"tags": [], "category": "General"}])
        intelligence = SqlIntelligence(llm, model="override-model")

        await intelligence.auto_tag("SELECT 1")

        assert llm.calls[0]["model"] == "override-model"
        assert intelligence.model == "override-model"

    def test_gemini_model_ignored_for_other_providers(self):
        intelligence = SqlIntelligence(FakeLLMProvider())

        intelligence.use_gemini_model("gemini-3-pro-preview")

        assert intelligence.model == "fake-model"

    def test_use_provider_replaces_model(self):
        intelligence = SqlIntelligence(FakeLLMProvider(), model="old")

        intelligence.use_provider(FakeLLMProvider(model="new"))

        assert intelligence.model == "new"


class TestPrompts:

    @pytest.fixture(autouse=True)
    def fresh_cache(self):
        clear_cache()
        yield
        clear_cache()

    def test_packaged_template_rendered(self):
        prompt = render_prompt("safety_check", code="DROP TABLE users", dialect=SqlDialect.MYSQL)

        assert "DROP TABLE users" in prompt
        assert "MySQL" in prompt

    def test_override_directory_wins(self, tmp_path, monkeypatch):
        (tmp_path / "safety_check.txt").write_text("Review {dialect}: {code}\n")
        monkeypatch.setenv("SQLSNIP_PROMPTS_DIR", str(tmp_path))

        assert render_prompt("safety_check", code="SELECT 1", dialect="x") == "Review x: SELECT 1"

    def test_missing_placeholder_names_prompt(self):
        with pytest.raises(KeyError, match="safety_check"):
            render_prompt("safety_check", code="SELECT 1")

    def test_unknown_prompt(self):
        with pytest.raises(FileNotFoundError, match="no_such_prompt"):
            load_prompt("no_such_prompt")
