"""Pure state transitions and the store that applies them.

``reduce(state, action)`` never mutates its input; each handler returns a new
``AppState`` built with ``model_copy``.
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from .actions import (
    Action,
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
from .models import AppState, EditorState, GatePhase, SessionConfig, Tab

logger = logging.getLogger(__name__)

A = TypeVar("A")
Handler = Callable[[AppState, Any], AppState]

_HANDLERS: dict[type, Handler] = {}

# Tabs that have no editor; selecting a snippet from them returns to the explorer
_NON_EDITOR_TABS = frozenset({Tab.SETTINGS, Tab.TESTS, Tab.CHAT})

_CLEARED_ASSESSMENTS: dict[str, Any] = {"safety": None, "lint": None, "gate_phase": GatePhase.IDLE}


def _handles(action_type: type[A]) -> Callable[[Callable[[AppState, A], AppState]], Callable[[AppState, A], AppState]]:
    def register(func: Callable[[AppState, A], AppState]) -> Callable[[AppState, A], AppState]:
        _HANDLERS[action_type] = func
        return func
    return register


def _settled(phase: GatePhase) -> GatePhase:
    """Phase after an execution ends; a statement awaiting approval stays blocked."""
    return phase if phase is GatePhase.BLOCKED else GatePhase.IDLE


def reduce(state: AppState, action: Action) -> AppState:
    """Apply ``action`` to ``state`` and return the new state.

    Raises:
        TypeError: If the action type has no registered handler
    """
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f"Unhandled action: {type(action).__name__}")
    return handler(state, action)


@_handles(TabChanged)
def _tab_changed(state: AppState, action: TabChanged) -> AppState:
    return state.model_copy(update={"active_tab": action.tab})


@_handles(SnippetSelected)
def _snippet_selected(state: AppState, action: SnippetSelected) -> AppState:
    snippet = state.find_snippet(action.snippet_id)
    if snippet is None:
        return state
    tab = Tab.FILES if state.active_tab in _NON_EDITOR_TABS else state.active_tab
    return state.model_copy(update={
        "active_id": snippet.id,
        "editor": EditorState(name=snippet.name, code=snippet.code),
        "active_tab": tab,
        **_CLEARED_ASSESSMENTS,
    })


@_handles(SnippetCreated)
def _snippet_created(state: AppState, action: SnippetCreated) -> AppState:
    snippet = action.snippet
    return state.model_copy(update={
        "snippets": (snippet, *state.snippets),
        "active_id": snippet.id,
        "editor": EditorState(name=snippet.name, code=snippet.code),
        "active_tab": Tab.FILES,
        **_CLEARED_ASSESSMENTS,
    })


@_handles(ActiveSnippetDeleted)
def _active_snippet_deleted(state: AppState, action: ActiveSnippetDeleted) -> AppState:
    if state.active_id is None:
        return state
    return state.model_copy(update={
        "snippets": tuple(s for s in state.snippets if s.id != state.active_id),
        "search_results": tuple(i for i in state.search_results if i != state.active_id),
        "active_id": None,
        "editor": EditorState(),
        **_CLEARED_ASSESSMENTS,
    })


@_handles(CodeEdited)
def _code_edited(state: AppState, action: CodeEdited) -> AppState:
    return state.model_copy(update={"editor": state.editor.model_copy(update={"code": action.code})})


@_handles(NameEdited)
def _name_edited(state: AppState, action: NameEdited) -> AppState:
    return state.model_copy(update={"editor": state.editor.model_copy(update={"name": action.name})})


@_handles(SnippetSaved)
def _snippet_saved(state: AppState, action: SnippetSaved) -> AppState:
    return _replace_snippet(state, action.snippet_id, {
        "name": action.name,
        "code": action.code,
        "tags": action.tags,
        "category": action.category,
    })


@_handles(BusyChanged)
def _busy_changed(state: AppState, action: BusyChanged) -> AppState:
    busy = state.busy | {action.task} if action.active else state.busy - {action.task}
    return state.model_copy(update={"busy": frozenset(busy)})


@_handles(GatePhaseChanged)
def _gate_phase_changed(state: AppState, action: GatePhaseChanged) -> AppState:
    return state.model_copy(update={"gate_phase": action.phase})


@_handles(SafetyAssessed)
def _safety_assessed(state: AppState, action: SafetyAssessed) -> AppState:
    return state.model_copy(update={"safety": action.assessment})


@_handles(ApprovalAborted)
def _approval_aborted(state: AppState, action: ApprovalAborted) -> AppState:
    if state.gate_phase is not GatePhase.BLOCKED:
        return state
    return state.model_copy(update={"gate_phase": GatePhase.IDLE, "safety": None})


@_handles(QueryExecuted)
def _query_executed(state: AppState, action: QueryExecuted) -> AppState:
    entry = action.entry
    updated = state.model_copy(update={
        "query_result": action.result,
        "history": (entry, *state.history),
        "gate_phase": _settled(state.gate_phase),
    })
    snippet = updated.find_snippet(entry.snippet_id)
    if snippet is None:
        return updated
    return _replace_snippet(updated, snippet.id, {
        "usage_count": snippet.usage_count + 1,
        "last_run_at": entry.timestamp,
        "code": entry.code,
    })


@_handles(LintCompleted)
def _lint_completed(state: AppState, action: LintCompleted) -> AppState:
    # Dropped once the user has switched snippets or edited the linted text
    if state.active_id != action.snippet_id or state.editor.code != action.code:
        return state
    update: dict[str, Any] = {"lint": action.result}
    if action.result.formatted_code:
        update["editor"] = state.editor.model_copy(update={"code": action.result.formatted_code})
    return state.model_copy(update=update)


@_handles(SearchCompleted)
def _search_completed(state: AppState, action: SearchCompleted) -> AppState:
    return state.model_copy(update={"search_query": action.query, "search_results": action.snippet_ids})


@_handles(DbtExportStarted)
def _dbt_export_started(state: AppState, action: DbtExportStarted) -> AppState:
    return state.model_copy(update={"dbt_export": None, "show_dbt_export": True})


@_handles(DbtExportCompleted)
def _dbt_export_completed(state: AppState, action: DbtExportCompleted) -> AppState:
    return state.model_copy(update={"dbt_export": action.model})


@_handles(DbtExportClosed)
def _dbt_export_closed(state: AppState, action: DbtExportClosed) -> AppState:
    return state.model_copy(update={"show_dbt_export": False})


@_handles(HistoryEntryLoaded)
def _history_entry_loaded(state: AppState, action: HistoryEntryLoaded) -> AppState:
    entry = action.entry
    # The originating snippet may have been deleted since the run
    active_id = entry.snippet_id if state.find_snippet(entry.snippet_id) else None
    return state.model_copy(update={
        "active_id": active_id,
        "editor": EditorState(name=entry.name, code=entry.code),
        "query_result": None,
        **_CLEARED_ASSESSMENTS,
    })


@_handles(ChatTurnAppended)
def _chat_turn_appended(state: AppState, action: ChatTurnAppended) -> AppState:
    return state.model_copy(update={"chat": (*state.chat, action.turn)})


@_handles(ChatReplyStreamed)
def _chat_reply_streamed(state: AppState, action: ChatReplyStreamed) -> AppState:
    if not state.chat or state.chat[-1].role != "assistant":
        return state
    snapshot = state.chat[-1].model_copy(update={"text": action.text})
    return state.model_copy(update={"chat": (*state.chat[:-1], snapshot)})


@_handles(ChatCleared)
def _chat_cleared(state: AppState, action: ChatCleared) -> AppState:
    return state.model_copy(update={"chat": ()})


@_handles(ConfigUpdated)
def _config_updated(state: AppState, action: ConfigUpdated) -> AppState:
    merged = {**state.config.model_dump(), **action.updates}
    return state.model_copy(update={"config": SessionConfig.model_validate(merged)})


def _replace_snippet(state: AppState, snippet_id: str, changes: dict[str, Any]) -> AppState:
    snippets = tuple(
        s.model_copy(update=changes) if s.id == snippet_id else s
        for s in state.snippets
    )
    return state.model_copy(update={"snippets": snippets})


class Store:
    """Holds the current ``AppState`` and notifies subscribers on change.

    Example:
        store = Store(initial_state())
        unsubscribe = store.subscribe(render)
        store.dispatch(TabChanged(Tab.HISTORY))
    """

    def __init__(self, state: AppState | None = None, reducer: Callable[[AppState, Action], AppState] = reduce):
        self._state = state or AppState()
        self._reducer = reducer
        self._listeners: list[Callable[[AppState], None]] = []

    @property
    def state(self) -> AppState:
        return self._state

    def dispatch(self, action: Action) -> AppState:
        """Reduce ``action`` into a new state and notify listeners if it changed."""
        new_state = self._reducer(self._state, action)
        if new_state is self._state:
            return new_state
        self._state = new_state
        logger.debug("Dispatched %s", type(action).__name__)
        for listener in list(self._listeners):
            listener(new_state)
        return new_state

    def subscribe(self, listener: Callable[[AppState], None]) -> Callable[[], None]:
        """Register ``listener``; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
