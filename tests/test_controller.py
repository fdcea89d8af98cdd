"""End-to-end tests for the snippet controller with a scripted provider."""
import asyncio

import pytest

from conftest import FakeLLMProvider
from sqlsnip.gateway import CHAT_ERROR_MESSAGE, ChatSession, SqlIntelligence
from sqlsnip.state import (
    AppState,
    BusyTask,
    GatePhase,
    SnippetController,
    Store,
    Tab,
)

UNSAFE = {"isSafe": False, "warnings": ["Updates every client"], "suggestions": "Add a WHERE clause"}
SAFE = {"isSafe": True, "warnings": [], "suggestions": "Looks good."}


class RecordingExecutor:
    """Wraps the mock executor and records what reached it."""

    def __init__(self, inner, fail=False):
        self.inner = inner
        self.fail = fail
        self.calls = []

    async def execute(self, sql, dialect):
        self.calls.append((sql, dialect))
        if self.fail:
            raise RuntimeError("backend gone")
        return await self.inner.execute(sql, dialect)


class HeldLLMProvider(FakeLLMProvider):
    """Scripted provider whose replies wait until ``release`` is set."""

    def __init__(self, replies=None):
        super().__init__(replies)
        self.release = asyncio.Event()

    async def chat_completion(self, messages, model=None, temperature=0.7, max_tokens=None, **kwargs):
        await self.release.wait()
        return await super().chat_completion(messages, model, temperature, max_tokens, **kwargs)


@pytest.fixture
def recording(executor):
    return RecordingExecutor(executor)


@pytest.fixture
def gated(store, intelligence, recording, fake_llm, clock):
    return SnippetController(
        store, intelligence, recording, chat=ChatSession(fake_llm), clock=clock
    )


class TestRunQuery:

    async def test_select_runs_without_approval(self, controller, store, fake_llm):
        before = store.state.find_snippet("1").usage_count

        result = await controller.run_query()

        assert len(result.rows) == 3
        assert fake_llm.calls == []
        state = store.state
        assert state.gate_phase is GatePhase.IDLE
        assert state.safety is None
        assert state.find_snippet("1").usage_count == before + 1
        assert state.history[0].name == "Get All Active Users"
        assert state.history[0].snippet_id == "1"

    async def test_unsafe_update_blocks_until_confirmed(self, gated, store, fake_llm, recording):
        gated.edit_code("UPDATE clients SET plan = 'X'")
        fake_llm.queue(UNSAFE)

        assert await gated.run_query() is None

        assert recording.calls == []
        assert store.state.gate_phase is GatePhase.BLOCKED
        assert store.state.safety.warnings == ["Updates every client"]

        result = await gated.confirm_run()

        assert result.columns == ["affected_rows"]
        assert len(recording.calls) == 1
        assert len(fake_llm.calls) == 1
        assert store.state.gate_phase is GatePhase.IDLE

    async def test_safety_check_happens_before_execution(self, gated, store, fake_llm, recording):
        gated.edit_code("DELETE FROM users WHERE id = 3")
        phases = []
        store.subscribe(lambda s: phases.append(s.gate_phase))
        fake_llm.queue(SAFE)

        await gated.run_query()

        assert phases.index(GatePhase.CHECKING) < phases.index(GatePhase.RUNNING)
        assert len(recording.calls) == 1
        assert store.state.safety.suggestions == "Looks good."

    async def test_abort_discards_statement(self, gated, store, fake_llm, recording):
        gated.edit_code("DROP TABLE users")
        fake_llm.queue(UNSAFE)
        await gated.run_query()

        gated.abort_run()

        assert store.state.gate_phase is GatePhase.IDLE
        assert store.state.safety is None
        assert recording.calls == []
        assert await gated.confirm_run() is None

    async def test_safety_failure_fails_open(self, gated, fake_llm, recording):
        gated.edit_code("TRUNCATE logs")
        fake_llm.queue(ConnectionError("offline"))

        result = await gated.run_query()

        assert result is not None
        assert len(recording.calls) == 1

    async def test_empty_editor_does_nothing(self, controller, store):
        controller.edit_code("   \n")

        assert await controller.run_query() is None
        assert store.state.history == ()

    async def test_result_credited_to_snippet_active_at_request(self, controller, store):
        run = asyncio.create_task(controller.run_query())
        await asyncio.sleep(0)
        controller.select_snippet("2")
        await run

        assert store.state.history[0].snippet_id == "1"
        assert store.state.find_snippet("1").usage_count == 13
        assert store.state.active_id == "2"

    async def test_ad_hoc_run_after_delete(self, controller, store):
        controller.delete_snippet()
        controller.edit_code("SELECT * FROM clients")

        result = await controller.run_query()

        assert len(result.rows) == 2
        assert store.state.history[0].snippet_id is None
        assert store.state.history[0].name == "Ad-hoc Query"

    async def test_executor_error_resets_phase(self, gated, store, recording):
        recording.fail = True

        with pytest.raises(RuntimeError):
            await gated.run_query()

        assert store.state.gate_phase is GatePhase.IDLE
        assert not store.state.is_busy(BusyTask.EXECUTING)
        assert store.state.history == ()

    async def test_overlapping_run_keeps_pending_approval(self, gated, store, fake_llm, recording):
        select = asyncio.create_task(gated.run_query())
        await asyncio.sleep(0)
        gated.edit_code("DELETE FROM clients")
        fake_llm.queue(UNSAFE)

        assert await gated.run_query() is None
        await select

        assert store.state.gate_phase is GatePhase.BLOCKED
        assert len(store.state.history) == 1

        result = await gated.confirm_run()

        assert result.columns == ["affected_rows"]
        assert recording.calls[-1][0] == "DELETE FROM clients"
        assert store.state.history[0].code == "DELETE FROM clients"
        assert store.state.gate_phase is GatePhase.IDLE


class TestHistory:

    async def test_rerun_from_history(self, controller, store):
        await controller.run_query()
        controller.select_snippet("2")
        entry_id = store.state.history[0].id

        await controller.rerun_from_history(entry_id)

        assert len(store.state.history) == 2
        assert store.state.active_id == "1"
        assert store.state.find_snippet("1").usage_count == 14

    def test_unknown_entry(self, controller):
        assert controller.load_from_history("nope") is None


class TestSnippets:

    def test_new_snippet(self, controller, store):
        snippet = controller.new_snippet()

        assert store.state.snippets[0] == snippet
        assert store.state.editor.code == "-- Start typing SQL..."
        assert snippet.name == "New Snippet"

    def test_delete_clears_editor(self, controller, store):
        controller.delete_snippet()

        assert store.state.active_id is None
        assert store.state.editor.code == ""
        assert len(store.state.snippets) == 1

    async def test_save_applies_tags(self, controller, store, fake_llm):
        controller.rename("Active users")
        fake_llm.queue({"tags": ["SELECT", "users"], "category": "Users"})

        saved = await controller.save_snippet()

        assert saved.name == "Active users"
        assert saved.tags == ("SELECT", "users")
        assert saved.category == "Users"
        assert not store.state.is_busy(BusyTask.SAVING)

    async def test_save_with_blank_category_uses_general(self, controller, fake_llm):
        fake_llm.queue({"tags": [], "category": ""})

        saved = await controller.save_snippet()

        assert saved.category == "General"

    async def test_save_without_active_snippet(self, controller, fake_llm):
        controller.delete_snippet()

        assert await controller.save_snippet() is None
        assert fake_llm.calls == []


class TestLintAndExport:

    async def test_lint_replaces_editor_text(self, controller, store, fake_llm):
        controller.edit_code("select 1")
        fake_llm.queue({"isValid": True, "errors": [], "suggestions": [], "formattedCode": "SELECT 1;"})

        await controller.lint_and_format()

        assert store.state.editor.code == "SELECT 1;"
        assert store.state.lint.is_valid

    async def test_lint_failure_keeps_text(self, controller, store, fake_llm):
        controller.edit_code("select 1")
        fake_llm.queue(RuntimeError("down"))

        await controller.lint_and_format()

        assert store.state.editor.code == "select 1"

    async def test_lint_dropped_after_switching_snippet(self, store, executor, clock):
        llm = HeldLLMProvider([{
            "isValid": True, "errors": [], "suggestions": [],
            "formattedCode": "SELECT *\nFROM users",
        }])
        controller = SnippetController(
            store, SqlIntelligence(llm), executor, chat=ChatSession(llm), clock=clock
        )

        lint = asyncio.create_task(controller.lint_and_format())
        await asyncio.sleep(0)
        controller.select_snippet("2")
        llm.release.set()
        await lint

        state = store.state
        assert state.active_id == "2"
        assert state.editor.code == state.find_snippet("2").code
        assert state.lint is None

    async def test_lint_dropped_after_edit(self, store, executor, clock):
        llm = HeldLLMProvider([{
            "isValid": True, "errors": [], "suggestions": [], "formattedCode": "SELECT 1;",
        }])
        controller = SnippetController(
            store, SqlIntelligence(llm), executor, chat=ChatSession(llm), clock=clock
        )
        controller.edit_code("select 1")

        lint = asyncio.create_task(controller.lint_and_format())
        await asyncio.sleep(0)
        controller.edit_code("select 2")
        llm.release.set()
        await lint

        assert store.state.editor.code == "select 2"

    async def test_export_opens_view_and_fills_model(self, controller, store, fake_llm):
        opened = []
        store.subscribe(lambda s: opened.append((s.show_dbt_export, s.dbt_export)))
        fake_llm.queue({"modelSql": "{{ config() }} select 1", "schemaYaml": "version: 2"})

        model = await controller.export_dbt()

        assert (True, None) in opened
        assert store.state.dbt_export == model
        controller.close_dbt_export()
        assert not store.state.show_dbt_export

    async def test_export_uses_placeholder_name(self, controller, fake_llm):
        controller.rename("")
        fake_llm.queue({"modelSql": "", "schemaYaml": ""})

        await controller.export_dbt()

        assert "Untitled Model" in fake_llm.calls[0]["messages"][-1].content


class TestSearch:

    async def test_search_resolves_ranked_snippets(self, controller, store, fake_llm):
        fake_llm.queue(["2"])

        matches = await controller.search("billing plans")

        assert [s.id for s in matches] == ["2"]
        assert store.state.search_query == "billing plans"

    async def test_blank_query_skips_request(self, controller, fake_llm):
        assert await controller.search("  ") == []
        assert fake_llm.calls == []


class TestChat:

    async def test_streams_reply_into_transcript(self, controller, store, fake_llm):
        fake_llm.queue_stream(["This ", "selects ", "users."])
        snapshots = []
        store.subscribe(lambda s: snapshots.append(s.chat[-1].text if s.chat else None))

        reply = await controller.send_chat("Explain")

        assert reply == "This selects users."
        assert [(t.role, t.text) for t in store.state.chat] == [
            ("user", "Explain"),
            ("assistant", "This selects users."),
        ]
        assert "This " in snapshots
        assert not store.state.is_busy(BusyTask.CHATTING)

    async def test_editor_sql_is_sent_as_context(self, controller, fake_llm):
        fake_llm.queue_stream(["ok"])

        await controller.send_chat("Explain")

        assert "SELECT * FROM users" in fake_llm.calls[0]["messages"][-1].content

    async def test_error_appends_apology(self, controller, store, fake_llm):
        fake_llm.queue_stream(RuntimeError("quota"))

        reply = await controller.send_chat("Explain")

        assert reply == CHAT_ERROR_MESSAGE
        assert store.state.chat[-1].text == CHAT_ERROR_MESSAGE

    async def test_clear_before_reply_leaves_transcript_empty(self, controller, store, fake_llm):
        fake_llm.queue_stream(["Stale ", "answer."])

        def clear_on_question(state):
            if state.chat and state.chat[-1].role == "user":
                controller.clear_chat()

        store.subscribe(clear_on_question)

        await controller.send_chat("Explain")

        assert store.state.chat == ()
        assert len(controller.chat.history) == 1
        assert not store.state.is_busy(BusyTask.CHATTING)

    async def test_blank_message_ignored(self, controller, store):
        assert await controller.send_chat("  ") is None
        assert store.state.chat == ()

    async def test_clear_resets_session_for_dialect(self, controller, store, fake_llm):
        fake_llm.queue_stream(["hi"])
        await controller.send_chat("hello")
        controller.update_config(dialect="Snowflake")

        controller.clear_chat()

        assert store.state.chat == ()
        assert len(controller.chat.history) == 1
        assert controller.chat.dialect == "Snowflake"


class TestConfig:

    def test_dialect_change_keeps_history_and_chat(self, controller, store):
        controller.update_config(dialect="MySQL")

        assert store.state.config.dialect == "MySQL"
        assert controller.chat.dialect == "PostgreSQL"

    def test_key_change_rebuilds_provider(self, executor):
        built = []

        def factory(config):
            llm = FakeLLMProvider(model=f"for-{config.openai_key}")
            built.append(llm)
            return llm

        controller = SnippetController(
            Store(AppState()), SqlIntelligence(FakeLLMProvider()), executor, provider_factory=factory
        )

        controller.update_config(openai_key="sk-test")

        assert controller.intelligence.llm is built[0]
        assert controller.intelligence.model == "for-sk-test"

    def test_tab_change(self, controller, store):
        controller.set_tab("history")

        assert store.state.active_tab is Tab.HISTORY
