"""Session state records.

All records are frozen; the reducer replaces them instead of mutating.
Nothing here is persisted: state lives for one session only.
"""

from datetime import datetime, timedelta
from enum import StrEnum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..dialects import SqlDialect
from ..executor import QueryResult
from ..gateway import DbtModel, LintResult, SafetyCheck
from ..llm import GEMINI_MODELS


def new_id() -> str:
    """Short random identifier for snippets and history entries."""
    return uuid4().hex[:9]


class Tab(StrEnum):
    """Sidebar views."""

    FILES = "files"
    SEARCH = "search"
    HISTORY = "history"
    SETTINGS = "settings"
    TESTS = "tests"
    CHAT = "chat"


class GatePhase(StrEnum):
    """Safety gate phases: idle -> checking -> {blocked, running} -> idle."""

    IDLE = "idle"
    CHECKING = "checking"
    BLOCKED = "blocked"
    RUNNING = "running"


class BusyTask(StrEnum):
    """Long-running requests the UI shows progress for."""

    EXECUTING = "executing"
    SAVING = "saving"
    LINTING = "linting"
    SEARCHING = "searching"
    EXPORTING_DBT = "exporting_dbt"
    CHATTING = "chatting"


class SessionConfig(BaseModel):
    """User-adjustable session settings."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    openai_key: str = Field(default="", alias="openaiKey")
    anthropic_key: str = Field(default="", alias="anthropicKey")
    gemini_model: str = Field(default=GEMINI_MODELS[0], alias="geminiModel")
    dialect: SqlDialect = Field(default=SqlDialect.POSTGRESQL)

    @field_validator("gemini_model")
    @classmethod
    def _known_gemini_model(cls, value: str) -> str:
        if value not in GEMINI_MODELS:
            raise ValueError(f"Unknown Gemini model: {value}. Supported: {', '.join(GEMINI_MODELS)}")
        return value

    @field_validator("dialect", mode="before")
    @classmethod
    def _parse_dialect(cls, value: object) -> SqlDialect:
        return SqlDialect.parse(str(value))


class Snippet(BaseModel):
    """A named, tagged, categorized unit of saved SQL text."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    name: str
    code: str
    tags: tuple[str, ...] = ()
    category: str = "General"
    usage_count: int = Field(default=0, ge=0)
    last_run_at: datetime | None = None
    created_at: datetime = Field(default_factory=datetime.now)


class ExecutionHistoryEntry(BaseModel):
    """Immutable record of one execution attempt."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    snippet_id: str | None = Field(default=None, description="Originating snippet, None for ad-hoc")
    name: str
    code: str
    timestamp: datetime
    execution_time: int = Field(ge=0, description="Measured duration in milliseconds")


class ChatTurn(BaseModel):
    """Immutable snapshot of one transcript message."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    text: str
    timestamp: datetime = Field(default_factory=datetime.now)


class EditorState(BaseModel):
    """In-progress name and SQL text of the editor."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    code: str = ""


class AppState(BaseModel):
    """Everything the presentation layer renders."""

    model_config = ConfigDict(frozen=True)

    snippets: tuple[Snippet, ...] = ()
    active_id: str | None = None
    editor: EditorState = EditorState()
    history: tuple[ExecutionHistoryEntry, ...] = Field(default=(), description="Newest first")
    query_result: QueryResult | None = None
    safety: SafetyCheck | None = None
    lint: LintResult | None = None
    gate_phase: GatePhase = GatePhase.IDLE
    search_query: str = ""
    search_results: tuple[str, ...] = Field(default=(), description="Matched snippet IDs, ranked")
    dbt_export: DbtModel | None = None
    show_dbt_export: bool = False
    chat: tuple[ChatTurn, ...] = ()
    busy: frozenset[BusyTask] = frozenset()
    active_tab: Tab = Tab.FILES
    config: SessionConfig = SessionConfig()

    @property
    def active_snippet(self) -> Snippet | None:
        return self.find_snippet(self.active_id)

    @property
    def show_safety_approval(self) -> bool:
        return self.gate_phase is GatePhase.BLOCKED

    def find_snippet(self, snippet_id: str | None) -> Snippet | None:
        if snippet_id is None:
            return None
        return next((s for s in self.snippets if s.id == snippet_id), None)

    def is_busy(self, task: BusyTask) -> bool:
        return task in self.busy

    def matched_snippets(self) -> list[Snippet]:
        """Search results resolved against the current snippet list."""
        found = (self.find_snippet(snippet_id) for snippet_id in self.search_results)
        return [s for s in found if s is not None]

    def snippets_by_category(self) -> dict[str, list[Snippet]]:
        """Group snippets by category, preserving first-seen category order."""
        groups: dict[str, list[Snippet]] = {}
        for snippet in self.snippets:
            groups.setdefault(snippet.category or "General", []).append(snippet)
        return groups


def seed_snippets(now: datetime | None = None) -> tuple[Snippet, ...]:
    """Snippets every session starts with."""
    now = now or datetime.now()
    return (
        Snippet(
            id="1",
            name="Get All Active Users",
            code='SELECT * FROM users WHERE status = "active" ORDER BY created_at DESC;',
            tags=("SELECT", "users", "filtering"),
            category="User Management",
            usage_count=12,
            last_run_at=now - timedelta(seconds=100),
            created_at=now - timedelta(seconds=1000),
        ),
        Snippet(
            id="2",
            name="Update Client Plan",
            code='UPDATE clients SET plan = "Enterprise" WHERE client_id = "C-123";',
            tags=("UPDATE", "clients", "financials"),
            category="Billing",
            usage_count=5,
            last_run_at=now - timedelta(seconds=500),
            created_at=now - timedelta(seconds=2000),
        ),
    )


def initial_state(config: SessionConfig | None = None, now: datetime | None = None) -> AppState:
    """Seeded state with the first snippet active and loaded in the editor."""
    snippets = seed_snippets(now)
    first = snippets[0]
    return AppState(
        snippets=snippets,
        active_id=first.id,
        editor=EditorState(name=first.name, code=first.code),
        config=config or SessionConfig(),
    )
