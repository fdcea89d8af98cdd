"""Tests for the command-line interface."""
import pytest
from typer.testing import CliRunner

from conftest import PASSING_REPLIES, FakeLLMProvider
from sqlsnip.cli import app as cli_app
from sqlsnip.executor import MockExecutor
from sqlsnip.gateway import SqlIntelligence

runner = CliRunner()


@pytest.fixture
def scripted(monkeypatch):
    """Route CLI commands to a scripted provider and a fast executor."""
    llm = FakeLLMProvider()

    def intelligence(config, console=None):
        return SqlIntelligence(llm)

    monkeypatch.setattr(cli_app, "get_intelligence", intelligence)
    monkeypatch.setattr(cli_app, "require_intelligence", intelligence)
    monkeypatch.setattr(cli_app, "get_executor", lambda latency=None: MockExecutor(latency=0.01))
    monkeypatch.delenv("SQLSNIP_DIALECT", raising=False)
    monkeypatch.delenv("SQLSNIP_GEMINI_MODEL", raising=False)
    return llm


class TestRun:

    def test_select_prints_rows(self, scripted):
        result = runner.invoke(cli_app.app, ["run", "SELECT * FROM users"])

        assert result.exit_code == 0, result.output
        assert "jdoe" in result.output
        assert scripted.calls == []

    def test_unsafe_statement_can_be_declined(self, scripted):
        scripted.queue({"isSafe": False, "warnings": ["No WHERE clause"], "suggestions": ""})

        result = runner.invoke(cli_app.app, ["run", "DELETE FROM users"], input="n\n")

        assert result.exit_code == 0, result.output
        assert "No WHERE clause" in result.output
        assert "Aborted." in result.output
        assert "affected_rows" not in result.output

    def test_yes_runs_after_warning(self, scripted):
        scripted.queue({"isSafe": False, "warnings": ["No WHERE clause"], "suggestions": ""})

        result = runner.invoke(cli_app.app, ["run", "--yes", "-d", "mysql", "DELETE FROM users"])

        assert result.exit_code == 0, result.output
        assert "Modification applied on MySQL." in result.output

    def test_reads_sql_file(self, scripted, tmp_path):
        path = tmp_path / "clients.sql"
        path.write_text("SELECT * FROM clients")

        result = runner.invoke(cli_app.app, ["run", "--file", str(path)])

        assert "Global Corp" in result.output

    def test_missing_sql(self, scripted):
        result = runner.invoke(cli_app.app, ["run"])

        assert result.exit_code == 1

    def test_unknown_dialect(self, scripted):
        result = runner.invoke(cli_app.app, ["run", "-d", "oracle", "SELECT 1"])

        assert result.exit_code == 1
        assert "Unknown SQL dialect" in result.output


class TestLlmCommands:

    def test_lint_writes_file(self, scripted, tmp_path):
        path = tmp_path / "q.sql"
        path.write_text("select 1")
        scripted.queue({"isValid": True, "errors": [], "suggestions": [], "formattedCode": "SELECT 1;"})

        result = runner.invoke(cli_app.app, ["lint", "--file", str(path), "--write"])

        assert result.exit_code == 0, result.output
        assert path.read_text() == "SELECT 1;\n"

    def test_tag(self, scripted):
        scripted.queue({"tags": ["SELECT", "payments"], "category": "Finance"})

        result = runner.invoke(cli_app.app, ["tag", "SELECT amount FROM payments"])

        assert "Finance" in result.output
        assert "SELECT, payments" in result.output

    def test_dbt_writes_model_and_schema(self, scripted, tmp_path):
        scripted.queue({"modelSql": "{{ config() }}\nselect 1", "schemaYaml": "version: 2"})

        result = runner.invoke(
            cli_app.app, ["dbt", "SELECT 1", "--name", "stg_one", "--out", str(tmp_path)]
        )

        assert result.exit_code == 0, result.output
        assert (tmp_path / "stg_one.sql").read_text().startswith("{{ config() }}")
        assert (tmp_path / "schema.yml").read_text() == "version: 2\n"

    def test_search_directory(self, scripted, tmp_path):
        (tmp_path / "revenue.sql").write_text("SELECT SUM(amount) FROM payments")
        (tmp_path / "people.sql").write_text("SELECT * FROM users")
        scripted.queue(["revenue"])

        result = runner.invoke(cli_app.app, ["search", "money", "--dir", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "revenue" in result.output
        assert "people" not in result.output


class TestSelftest:

    def test_passes_with_cooperative_model(self, scripted):
        scripted.queue(*PASSING_REPLIES)

        result = runner.invoke(cli_app.app, ["selftest"])

        assert result.exit_code == 0, result.output
        assert "Status: SUCCESS" in result.output

    def test_fails_without_model(self, scripted, monkeypatch):
        monkeypatch.setattr(cli_app, "get_intelligence", lambda config, console=None: SqlIntelligence(None))

        result = runner.invoke(cli_app.app, ["selftest"])

        assert result.exit_code == 1
        assert "Status: FAILED" in result.output


class TestGlobalOptions:

    def test_rejects_unknown_log_level(self, scripted):
        result = runner.invoke(cli_app.app, ["--log-level", "loud", "health"])

        assert result.exit_code == 1

    def test_health_without_keys(self, scripted, monkeypatch):
        for name in ("LLM_PROVIDER", "GEMINI_API_KEY", "GOOGLE_API_KEY"):
            monkeypatch.delenv(name, raising=False)

        result = runner.invoke(cli_app.app, ["health"])

        assert result.exit_code == 0, result.output
        assert "NOT CONFIGURED" in result.output
        assert "Mock executor: OK" in result.output
