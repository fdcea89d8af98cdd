"""User-facing operations over the store.

The controller is the only place that talks to the gateway, the executor and
the chat session; everything it learns is dispatched to the store as an
action. Results of long-running requests are keyed by the snippet id captured
when the request was made, not by whatever is active when they complete.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from ..executor import MockExecutor, QueryResult
from ..gateway import CHAT_ERROR_MESSAGE, ChatSession, DbtModel, LintResult, SqlIntelligence
from ..llm import GeminiProvider, LLMProvider
from .actions import (
    ActiveSnippetDeleted,
    ApprovalAborted,
    BusyChanged,
    ChatCleared,
    ChatReplyStreamed,
    ChatTurnAppended,
    CodeEdited,
    ConfigUpdated,
    DbtExportClosed,
    DbtExportCompleted,
    DbtExportStarted,
    GatePhaseChanged,
    HistoryEntryLoaded,
    LintCompleted,
    NameEdited,
    QueryExecuted,
    SafetyAssessed,
    SearchCompleted,
    SnippetCreated,
    SnippetSaved,
    SnippetSelected,
    TabChanged,
)
from .models import BusyTask, ChatTurn, ExecutionHistoryEntry, GatePhase, SessionConfig, Snippet, Tab
from .reducer import Store
from .safety_gate import SafetyGate

logger = logging.getLogger(__name__)

NEW_SNIPPET_NAME = "New Snippet"
NEW_SNIPPET_CODE = "-- Start typing SQL..."
AD_HOC_NAME = "Ad-hoc Query"
UNTITLED_MODEL_NAME = "Untitled Model"

ProviderFactory = Callable[[SessionConfig], LLMProvider | None]


class SnippetController:
    """Coordinates snippets, execution, LLM requests and chat.

    Args:
        store: Store holding the session state
        intelligence: Gateway for tagging, safety, lint, search and dbt export
        executor: Backend that runs SQL
        chat: Chat session; created from the intelligence provider if omitted
        clock: Source of timestamps
        provider_factory: Rebuilds the LLM provider when API keys change
    """

    def __init__(
        self,
        store: Store,
        intelligence: SqlIntelligence,
        executor: MockExecutor,
        chat: ChatSession | None = None,
        clock: Callable[[], datetime] = datetime.now,
        provider_factory: ProviderFactory | None = None,
    ):
        self.store = store
        self._intelligence = intelligence
        self._executor = executor
        self._gate = SafetyGate(intelligence)
        self._chat = chat or ChatSession(
            intelligence.llm, store.state.config.dialect, model=intelligence.model
        )
        self._clock = clock
        self._provider_factory = provider_factory

    @property
    def intelligence(self) -> SqlIntelligence:
        return self._intelligence

    @property
    def chat(self) -> ChatSession:
        return self._chat

    # Navigation and editing

    def set_tab(self, tab: Tab | str) -> None:
        self.store.dispatch(TabChanged(Tab(tab)))

    def select_snippet(self, snippet_id: str) -> None:
        self.store.dispatch(SnippetSelected(snippet_id))

    def new_snippet(self) -> Snippet:
        snippet = Snippet(
            name=NEW_SNIPPET_NAME,
            code=NEW_SNIPPET_CODE,
            category="General",
            created_at=self._clock(),
        )
        self.store.dispatch(SnippetCreated(snippet))
        return snippet

    def delete_snippet(self) -> None:
        """Delete the active snippet, if any."""
        self.store.dispatch(ActiveSnippetDeleted())

    def edit_code(self, code: str) -> None:
        self.store.dispatch(CodeEdited(code))

    def rename(self, name: str) -> None:
        self.store.dispatch(NameEdited(name))

    def update_config(self, **updates: Any) -> SessionConfig:
        """Merge ``updates`` into the session config.

        Changing the Gemini model switches the model used for new requests;
        changing an API key rebuilds the provider when a factory is set.
        Changing the dialect leaves history and the chat session alone.
        """
        before = self.store.state.config
        config = self.store.dispatch(ConfigUpdated(updates)).config

        if self._provider_factory is not None and (
            config.openai_key != before.openai_key or config.anthropic_key != before.anthropic_key
        ):
            llm = self._provider_factory(config)
            self._intelligence.use_provider(llm)
            self._chat.use_provider(llm)
            logger.info("LLM provider rebuilt: %s", type(llm).__name__ if llm else "none")

        if config.gemini_model != before.gemini_model:
            self._intelligence.use_gemini_model(config.gemini_model)
            if isinstance(self._intelligence.llm, GeminiProvider):
                self._chat.use_model(config.gemini_model)
        return config

    # Execution

    async def run_query(self, skip_safety_check: bool = False) -> QueryResult | None:
        """Run the editor text through the safety gate and the executor.

        Returns:
            The result, or None if the editor is empty or execution is
            blocked pending approval
        """
        state = self.store.state
        code = state.editor.code.strip()
        if not code:
            return None

        snippet_id = state.active_id
        name = state.editor.name or AD_HOC_NAME
        dialect = state.config.dialect

        if self._gate.requires_check(code, skip_safety_check):
            self.store.dispatch(GatePhaseChanged(GatePhase.CHECKING))
        decision = await self._gate.evaluate(code, dialect, skip_safety_check)
        if decision.assessment is not None:
            self.store.dispatch(SafetyAssessed(decision.assessment))
        if decision.blocked:
            self.store.dispatch(GatePhaseChanged(GatePhase.BLOCKED))
            return None

        # An overlapping run must not clear another statement's pending approval
        awaiting_approval = self.store.state.gate_phase is GatePhase.BLOCKED
        if skip_safety_check or not awaiting_approval:
            self.store.dispatch(GatePhaseChanged(GatePhase.RUNNING))
        self.store.dispatch(BusyChanged(BusyTask.EXECUTING, True))
        try:
            result = await self._executor.execute(code, dialect)
        except Exception:
            if self.store.state.gate_phase is not GatePhase.BLOCKED:
                self.store.dispatch(GatePhaseChanged(GatePhase.IDLE))
            raise
        finally:
            self.store.dispatch(BusyChanged(BusyTask.EXECUTING, False))

        entry = ExecutionHistoryEntry(
            snippet_id=snippet_id,
            name=name,
            code=code,
            timestamp=self._clock(),
            execution_time=result.execution_time,
        )
        self.store.dispatch(QueryExecuted(result, entry))
        logger.info("Executed %r in %dms", name, result.execution_time)
        return result

    async def confirm_run(self) -> QueryResult | None:
        """Run a blocked statement without a second safety check."""
        if self.store.state.gate_phase is not GatePhase.BLOCKED:
            return None
        return await self.run_query(skip_safety_check=True)

    def abort_run(self) -> None:
        self.store.dispatch(ApprovalAborted())

    def load_from_history(self, entry_id: str) -> ExecutionHistoryEntry | None:
        entry = next((e for e in self.store.state.history if e.id == entry_id), None)
        if entry is not None:
            self.store.dispatch(HistoryEntryLoaded(entry))
        return entry

    async def rerun_from_history(self, entry_id: str) -> QueryResult | None:
        """Load a history entry into the editor and run it through the gate."""
        if self.load_from_history(entry_id) is None:
            return None
        return await self.run_query()

    # LLM-backed operations

    async def save_snippet(self) -> Snippet | None:
        """Save the editor into the active snippet with fresh tags and category."""
        state = self.store.state
        snippet_id = state.active_id
        if snippet_id is None:
            return None
        name, code = state.editor.name, state.editor.code
        dialect = state.config.dialect

        self.store.dispatch(BusyChanged(BusyTask.SAVING, True))
        try:
            suggestion = await self._intelligence.auto_tag(code, dialect)
        finally:
            self.store.dispatch(BusyChanged(BusyTask.SAVING, False))

        self.store.dispatch(SnippetSaved(
            snippet_id=snippet_id,
            name=name,
            code=code,
            tags=tuple(suggestion.tags),
            category=suggestion.category or "General",
        ))
        return self.store.state.find_snippet(snippet_id)

    async def lint_and_format(self) -> LintResult | None:
        """Lint the editor text and replace it with the formatted version."""
        state = self.store.state
        snippet_id, code = state.active_id, state.editor.code
        if not code.strip():
            return None

        self.store.dispatch(BusyChanged(BusyTask.LINTING, True))
        try:
            result = await self._intelligence.lint_and_format(code, state.config.dialect)
        finally:
            self.store.dispatch(BusyChanged(BusyTask.LINTING, False))

        self.store.dispatch(LintCompleted(result, snippet_id, code))
        return result

    async def export_dbt(self) -> DbtModel:
        """Open the dbt export view and fill it with a generated model."""
        state = self.store.state
        model_name = state.editor.name or UNTITLED_MODEL_NAME

        self.store.dispatch(DbtExportStarted())
        self.store.dispatch(BusyChanged(BusyTask.EXPORTING_DBT, True))
        try:
            model = await self._intelligence.generate_dbt_model(
                model_name, state.editor.code, state.config.dialect
            )
        finally:
            self.store.dispatch(BusyChanged(BusyTask.EXPORTING_DBT, False))

        self.store.dispatch(DbtExportCompleted(model))
        return model

    def close_dbt_export(self) -> None:
        self.store.dispatch(DbtExportClosed())

    async def search(self, query: str) -> list[Snippet]:
        """Rank the session's snippets against a natural-language query."""
        if not query.strip():
            return []
        snippets = self.store.state.snippets

        self.store.dispatch(BusyChanged(BusyTask.SEARCHING, True))
        try:
            ids = await self._intelligence.semantic_search(query, snippets)
        finally:
            self.store.dispatch(BusyChanged(BusyTask.SEARCHING, False))

        self.store.dispatch(SearchCompleted(query, tuple(ids)))
        return self.store.state.matched_snippets()

    # Chat

    async def send_chat(self, message: str) -> str | None:
        """Send a chat message, streaming the reply into the transcript.

        If the chat is cleared while the reply streams, the rest of the reply
        is discarded and nothing more reaches the transcript.

        Returns:
            The reply text received, or None if the message was empty or a
            reply is already streaming
        """
        state = self.store.state
        if not message.strip() or state.is_busy(BusyTask.CHATTING):
            return None

        generation = self._chat.generation
        self.store.dispatch(ChatTurnAppended(ChatTurn(role="user", text=message, timestamp=self._clock())))
        self.store.dispatch(BusyChanged(BusyTask.CHATTING, True))
        reply = ""
        fragments = self._chat.send(message, current_sql=state.editor.code)
        try:
            # The placeholder turn appears with the first fragment
            async for chunk in fragments:
                if self._chat.generation != generation:
                    logger.debug("Chat cleared mid-reply, dropping the rest")
                    break
                if not chunk:
                    continue
                if not reply:
                    self._append_assistant_turn("")
                reply += chunk
                self.store.dispatch(ChatReplyStreamed(reply))
            if not reply and self._chat.generation == generation:
                self._append_assistant_turn("")
        except Exception:
            logger.exception("Chat request failed")
            reply = CHAT_ERROR_MESSAGE
            if self._chat.generation == generation:
                self._append_assistant_turn(reply)
        finally:
            await fragments.aclose()
            self.store.dispatch(BusyChanged(BusyTask.CHATTING, False))
        return reply

    def clear_chat(self) -> None:
        """Empty the transcript and restart the session for the current dialect."""
        self.store.dispatch(ChatCleared())
        self._chat.reset(self.store.state.config.dialect)

    def _append_assistant_turn(self, text: str) -> None:
        self.store.dispatch(ChatTurnAppended(ChatTurn(role="assistant", text=text, timestamp=self._clock())))
