"""Session state: records, actions, reducer/store, safety gate and controller."""

from .actions import Action
from .controller import SnippetController
from .models import (
    AppState,
    BusyTask,
    ChatTurn,
    EditorState,
    ExecutionHistoryEntry,
    GatePhase,
    SessionConfig,
    Snippet,
    Tab,
    initial_state,
    new_id,
    seed_snippets,
)
from .reducer import Store, reduce
from .safety_gate import MODIFICATION_KEYWORDS, GateDecision, SafetyGate, is_modification_query

__all__ = [
    "Action",
    "SnippetController",
    "AppState",
    "BusyTask",
    "ChatTurn",
    "EditorState",
    "ExecutionHistoryEntry",
    "GatePhase",
    "SessionConfig",
    "Snippet",
    "Tab",
    "initial_state",
    "new_id",
    "seed_snippets",
    "Store",
    "reduce",
    "MODIFICATION_KEYWORDS",
    "GateDecision",
    "SafetyGate",
    "is_modification_query",
]
