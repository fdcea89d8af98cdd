"""Actions describing every state transition.

Actions are plain immutable values; ``reducer.reduce`` interprets them.
"""

from dataclasses import dataclass, field
from typing import Any

from ..executor import QueryResult
from ..gateway import DbtModel, LintResult, SafetyCheck
from .models import BusyTask, ChatTurn, ExecutionHistoryEntry, GatePhase, Snippet, Tab


@dataclass(frozen=True)
class TabChanged:
    tab: Tab


@dataclass(frozen=True)
class SnippetSelected:
    snippet_id: str


@dataclass(frozen=True)
class SnippetCreated:
    snippet: Snippet


@dataclass(frozen=True)
class ActiveSnippetDeleted:
    pass


@dataclass(frozen=True)
class CodeEdited:
    code: str


@dataclass(frozen=True)
class NameEdited:
    name: str


@dataclass(frozen=True)
class SnippetSaved:
    """Save with auto-tag results; keyed by the id captured at request time."""

    snippet_id: str
    name: str
    code: str
    tags: tuple[str, ...]
    category: str


@dataclass(frozen=True)
class BusyChanged:
    task: BusyTask
    active: bool


@dataclass(frozen=True)
class GatePhaseChanged:
    phase: GatePhase


@dataclass(frozen=True)
class SafetyAssessed:
    assessment: SafetyCheck


@dataclass(frozen=True)
class ApprovalAborted:
    pass


@dataclass(frozen=True)
class QueryExecuted:
    """Execution finished; ``entry.snippet_id`` names the snippet to update."""

    result: QueryResult
    entry: ExecutionHistoryEntry


@dataclass(frozen=True)
class LintCompleted:
    """Lint finished for ``code`` as it stood in the editor of ``snippet_id``."""

    result: LintResult
    snippet_id: str | None
    code: str


@dataclass(frozen=True)
class SearchCompleted:
    query: str
    snippet_ids: tuple[str, ...]


@dataclass(frozen=True)
class DbtExportStarted:
    pass


@dataclass(frozen=True)
class DbtExportCompleted:
    model: DbtModel


@dataclass(frozen=True)
class DbtExportClosed:
    pass


@dataclass(frozen=True)
class HistoryEntryLoaded:
    entry: ExecutionHistoryEntry


@dataclass(frozen=True)
class ChatTurnAppended:
    turn: ChatTurn


@dataclass(frozen=True)
class ChatReplyStreamed:
    """Replace the trailing assistant turn with a longer snapshot."""

    text: str


@dataclass(frozen=True)
class ChatCleared:
    pass


@dataclass(frozen=True)
class ConfigUpdated:
    updates: dict[str, Any] = field(default_factory=dict)


Action = (
    TabChanged
    | SnippetSelected
    | SnippetCreated
    | ActiveSnippetDeleted
    | CodeEdited
    | NameEdited
    | SnippetSaved
    | BusyChanged
    | GatePhaseChanged
    | SafetyAssessed
    | ApprovalAborted
    | QueryExecuted
    | LintCompleted
    | SearchCompleted
    | DbtExportStarted
    | DbtExportCompleted
    | DbtExportClosed
    | HistoryEntryLoaded
    | ChatTurnAppended
    | ChatReplyStreamed
    | ChatCleared
    | ConfigUpdated
)
