"""Custom Textual widgets for the TUI.

Hides widget implementation details:
- Snippet tree grouping and selection
- Result table rendering
- Sidebar panels (search, history, settings, chat, tests)
- Log rendering and level filtering
"""

import logging
import threading
from datetime import datetime

from rich.markup import escape
from rich.text import Text
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.events import Click
from textual.message import Message
from textual.widgets import (
    Button,
    DataTable,
    Input,
    Label,
    ListItem,
    ListView,
    Markdown,
    RichLog,
    Select,
    Static,
    Tree,
)

from ..dialects import SqlDialect
from ..executor import QueryResult
from ..gateway import QUICK_PROMPTS
from ..harness import HARNESS_SUITE, HarnessOutcome
from ..llm import GEMINI_MODELS
from ..state import AppState, ChatTurn, ExecutionHistoryEntry, SessionConfig, Snippet
from .config import HISTORY_TIMESTAMP_FORMAT, LOG_MAX_MESSAGE_LENGTH, LOG_TIMESTAMP_FORMAT, LogLevel
from .formatting import format_cell, format_tags, one_line, relative_time


class SnippetExplorer(Tree[str]):
    """Snippets grouped into category folders; leaf data is the snippet id."""

    BORDER_TITLE = "Explorer"

    class Chosen(Message):
        def __init__(self, snippet_id: str) -> None:
            super().__init__()
            self.snippet_id = snippet_id

    def __init__(self, *args, **kwargs) -> None:
        super().__init__("Snippets", *args, **kwargs)
        self.show_root = False
        self.guide_depth = 2

    def refresh_snippets(self, state: AppState) -> None:
        """Rebuild the tree from the snippets in ``state``."""
        self.clear()
        for category, members in state.snippets_by_category().items():
            folder = self.root.add(f"{escape(category)} [dim]({len(members)})[/dim]", expand=True)
            for snippet in members:
                name = escape(snippet.name)
                folder.add_leaf(f"[b]{name}[/b]" if snippet.id == state.active_id else name, data=snippet.id)
        self.border_subtitle = f"{len(state.snippets)} snippets"

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        event.stop()
        if event.node.data:
            self.post_message(self.Chosen(event.node.data))


class ResultPanel(Vertical):
    """Result grid with an execution status line."""

    BORDER_TITLE = "Results"

    def compose(self):
        yield DataTable(id="result-table", zebra_stripes=True, cursor_type="row")
        yield Static("[dim]Run a query to see results[/dim]", id="result-status")

    def show_result(self, result: QueryResult | None) -> None:
        table = self.query_one("#result-table", DataTable)
        status = self.query_one("#result-status", Static)
        table.clear(columns=True)
        if result is None:
            status.update("[dim]Run a query to see results[/dim]")
            self.border_subtitle = ""
            return

        table.add_columns(*result.columns)
        for row in result.rows:
            table.add_row(*(format_cell(row.get(column)) for column in result.columns))
        color = "green" if result.status == "success" else "red"
        status.update(f"[{color}]{result.message}[/{color}]")
        self.border_subtitle = f"{len(result.rows)} rows | {result.execution_time}ms"

    def show_running(self) -> None:
        self.query_one("#result-status", Static).update("[yellow]Executing...[/yellow]")


class SearchPanel(Vertical):
    """Natural-language search box with ranked matches."""

    class Requested(Message):
        def __init__(self, query: str) -> None:
            super().__init__()
            self.query = query

    def compose(self):
        yield Label("SEMANTIC SEARCH", classes="panel-title")
        yield Input(placeholder="e.g. Find inconsistent client ids", id="search-input")
        yield ListView(id="search-results")

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        if event.value.strip():
            self.post_message(self.Requested(event.value))

    def show_results(self, matches: list[Snippet], searching: bool) -> None:
        results = self.query_one("#search-results", ListView)
        results.clear()
        if searching:
            results.append(ListItem(Label("[dim]Searching...[/dim]")))
            return
        for snippet in matches:
            results.append(ListItem(
                Label(f"[b]{escape(snippet.name)}[/b]\n[dim]{escape(one_line(snippet.code))}[/dim]"),
                name=snippet.id,
            ))


class HistoryPanel(Vertical):
    """Executions, newest first. Enter loads an entry, ``r`` reruns it."""

    BINDINGS = [("r", "rerun", "Rerun")]

    class Loaded(Message):
        def __init__(self, entry_id: str, rerun: bool = False) -> None:
            super().__init__()
            self.entry_id = entry_id
            self.rerun = rerun

    def compose(self):
        yield Label("EXECUTION HISTORY", classes="panel-title")
        yield ListView(id="history-list")

    def show_history(self, history: tuple[ExecutionHistoryEntry, ...]) -> None:
        entries = self.query_one("#history-list", ListView)
        entries.clear()
        if not history:
            entries.append(ListItem(Label("[dim]No executions yet[/dim]")))
            return
        for entry in history:
            entries.append(ListItem(
                Label(
                    f"[b]{escape(entry.name)}[/b] [dim]{entry.timestamp.strftime(HISTORY_TIMESTAMP_FORMAT)}"
                    f" | {entry.execution_time}ms[/dim]\n[dim]{escape(one_line(entry.code))}[/dim]"
                ),
                name=entry.id,
            ))

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        event.stop()
        if event.item.name:
            self.post_message(self.Loaded(event.item.name))

    def action_rerun(self) -> None:
        item = self.query_one("#history-list", ListView).highlighted_child
        if item is not None and item.name:
            self.post_message(self.Loaded(item.name, rerun=True))


class SettingsPanel(Vertical):
    """Session settings; API keys apply when Enter is pressed."""

    class Changed(Message):
        def __init__(self, field: str, value: str) -> None:
            super().__init__()
            self.field = field
            self.value = value

    def __init__(self, config: SessionConfig, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._config = config

    def compose(self):
        yield Label("SETTINGS", classes="panel-title")
        yield Label("SQL dialect")
        yield Select(
            [(d.value, d.value) for d in SqlDialect],
            value=self._config.dialect.value,
            allow_blank=False,
            id="setting-dialect",
        )
        yield Label("Gemini model")
        yield Select(
            [(m, m) for m in GEMINI_MODELS],
            value=self._config.gemini_model,
            allow_blank=False,
            id="setting-gemini-model",
        )
        yield Label("OpenAI API key")
        yield Input(value=self._config.openai_key, password=True, placeholder="sk-...", id="setting-openai-key")
        yield Label("Anthropic API key")
        yield Input(
            value=self._config.anthropic_key, password=True, placeholder="sk-ant-...", id="setting-anthropic-key"
        )
        yield Static("[dim]Keys are kept for this session only.[/dim]")

    def on_select_changed(self, event: Select.Changed) -> None:
        event.stop()
        field = {"setting-dialect": "dialect", "setting-gemini-model": "gemini_model"}.get(event.select.id or "")
        if field and event.value is not Select.BLANK:
            self.post_message(self.Changed(field, str(event.value)))

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        field = {"setting-openai-key": "openai_key", "setting-anthropic-key": "anthropic_key"}.get(event.input.id or "")
        if field:
            self.post_message(self.Changed(field, event.value.strip()))


class ChatPanel(Vertical):
    """Transcript with quick prompts and an input line."""

    class Sent(Message):
        def __init__(self, text: str) -> None:
            super().__init__()
            self.text = text

    class Cleared(Message):
        pass

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._rendered: list[ChatTurn] = []

    def compose(self):
        with Horizontal(classes="panel-header"):
            yield Label("AI ASSISTANT", classes="panel-title")
            yield Button("Clear", id="chat-clear", variant="default")
        yield VerticalScroll(id="chat-transcript")
        with Horizontal(id="chat-quick"):
            for i, label in enumerate(QUICK_PROMPTS):
                yield Button(label, id=f"quick-{i}", classes="quick-prompt")
        yield Input(placeholder="Ask about this SQL...", id="chat-input")

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        if event.value.strip():
            self.post_message(self.Sent(event.value))
            event.input.value = ""

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        button_id = event.button.id or ""
        if button_id == "chat-clear":
            self.post_message(self.Cleared())
        elif button_id.startswith("quick-"):
            prompt = list(QUICK_PROMPTS.values())[int(button_id.removeprefix("quick-"))]
            self.post_message(self.Sent(prompt))

    def show_transcript(self, chat: tuple[ChatTurn, ...], typing: bool) -> None:
        """Render ``chat``, updating only the trailing turn while it streams."""
        transcript = self.query_one("#chat-transcript", VerticalScroll)
        rendered = self._rendered
        widgets = list(transcript.children)

        same = 0
        while same < min(len(chat), len(rendered)) and chat[same] == rendered[same]:
            same += 1

        if (
            rendered
            and same == len(rendered) - 1
            and len(chat) >= len(rendered)
            and chat[same].role == rendered[same].role
        ):
            # Streaming: the last turn grew
            widgets[-1].query_one(Markdown).update(chat[same].text or "...")
            same += 1
        else:
            for widget in widgets[same:]:
                widget.remove()

        for turn in chat[same:]:
            transcript.mount(_turn_widget(turn))

        self._rendered = list(chat)
        self.border_subtitle = "typing..." if typing else f"{len(chat)} messages"
        transcript.scroll_end(animate=False)


def _turn_widget(turn: ChatTurn) -> Vertical:
    prefix = "You" if turn.role == "user" else "Assistant"
    container = Vertical(classes=f"chat-message {turn.role}-message")
    container.compose_add_child(Static(f"{prefix} [dim]{turn.timestamp:%H:%M}[/dim]", classes="message-header"))
    container.compose_add_child(Markdown(turn.text or "...", classes="message-content"))
    return container


class TestDashboard(Vertical):
    """Self-test cases with live pass/fail status."""

    class RunRequested(Message):
        pass

    def compose(self):
        with Horizontal(classes="panel-header"):
            yield Label("TEST DASHBOARD", classes="panel-title")
            yield Button("Run all", id="tests-run", variant="primary")
        yield DataTable(id="tests-table", cursor_type="row")
        yield Static("", id="tests-summary")

    def on_mount(self) -> None:
        table = self.query_one("#tests-table", DataTable)
        table.add_column("Category", key="category")
        table.add_column("Name", key="name")
        table.add_column("Status", key="status")
        table.add_column("Time", key="time")
        for case in HARNESS_SUITE:
            table.add_row(case.category, case.name, "[dim]idle[/dim]", "", key=case.id)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "tests-run":
            self.post_message(self.RunRequested())

    def mark_running(self) -> None:
        table = self.query_one("#tests-table", DataTable)
        for case in HARNESS_SUITE:
            table.update_cell(case.id, "status", "[yellow]running[/yellow]")
            table.update_cell(case.id, "time", "")
        self.query_one("#tests-summary", Static).update("")
        self.query_one("#tests-run", Button).disabled = True

    def record(self, outcome: HarnessOutcome) -> None:
        status = "[green]passed[/green]" if outcome.passed else f"[red]failed[/red] [dim]{outcome.error}[/dim]"
        table = self.query_one("#tests-table", DataTable)
        table.update_cell(outcome.case.id, "status", status)
        table.update_cell(outcome.case.id, "time", f"{outcome.duration_ms:.0f}ms")

    def finish(self, outcomes: list[HarnessOutcome]) -> None:
        passed = sum(1 for o in outcomes if o.passed)
        color = "green" if passed == len(outcomes) else "red"
        self.query_one("#tests-summary", Static).update(f"[{color}]{passed}/{len(outcomes)} passed[/{color}]")
        self.query_one("#tests-run", Button).disabled = False


class SnippetInfo(Static):
    """Tags, usage and the latest lint or safety notes for the editor."""

    def show_state(self, state: AppState, now: datetime | None = None) -> None:
        lines = []
        snippet = state.active_snippet
        if snippet is not None:
            lines.append(
                f"[b]{escape(snippet.category)}[/b]  {format_tags(snippet.tags)}  "
                f"[dim]runs: {snippet.usage_count} | last run: {relative_time(snippet.last_run_at, now)}[/dim]"
            )
        else:
            lines.append("[dim]Unsaved query[/dim]")

        if state.lint is not None:
            verdict = "[green]valid[/green]" if state.lint.is_valid else "[red]invalid[/red]"
            lines.append(f"Lint: {verdict}")
            lines.extend(f"  [red]x[/red] {escape(error)}" for error in state.lint.errors)
            lines.extend(f"  [yellow]![/yellow] {escape(tip)}" for tip in state.lint.suggestions)

        if state.safety is not None and not state.show_safety_approval:
            lines.append(f"Safety: [dim]{escape(state.safety.suggestions)}[/dim]")

        self.update("\n".join(lines))


class LogPanel(RichLog):
    """Log panel for ``logging`` records with level filtering.

    Hidden by default, shown with --log-level debug/info or toggled with Ctrl+D.
    """

    BORDER_TITLE = "Log"

    def __init__(self, *args, log_level: int = LogLevel.WARNING, **kwargs) -> None:
        super().__init__(*args, markup=True, highlight=False, auto_scroll=True, wrap=False, **kwargs)
        self._log_level = log_level
        self.display = False

    @property
    def log_level(self) -> int:
        """Current log level threshold."""
        return self._log_level

    @log_level.setter
    def log_level(self, level: int) -> None:
        self._log_level = level
        self.border_subtitle = f"Level: {LogLevel.name(level)}"

    def on_mount(self) -> None:
        self.border_subtitle = f"Level: {LogLevel.name(self._log_level)}"

    def add_record(self, record: logging.LogRecord) -> None:
        """Add a log record if it meets the current level threshold."""
        if record.levelno < self._log_level:
            return

        level_colors = {
            LogLevel.DEBUG: "dim white",
            LogLevel.INFO: "cyan",
            LogLevel.WARNING: "yellow",
            LogLevel.ERROR: "red",
        }
        timestamp = datetime.fromtimestamp(record.created).strftime(LOG_TIMESTAMP_FORMAT)
        message = record.getMessage()
        if len(message) > LOG_MAX_MESSAGE_LENGTH:
            message = message[:LOG_MAX_MESSAGE_LENGTH] + "..."
        component = record.name.removeprefix("sqlsnip.")
        color = level_colors.get(record.levelno, "red")

        self.write(Text.assemble(
            (timestamp, "dim"), " ",
            (f"{record.levelname:<7}", color), " ",
            (f"[{component}]", "magenta"), " ",
            message,
        ))

    def toggle(self) -> bool:
        """Toggle visibility. Returns new state."""
        self.display = not self.display
        return self.display

    def on_click(self, event: Click) -> None:
        """Copy log content to clipboard when clicked."""
        event.stop()
        text = "\n".join(line.text for line in self.lines)
        if not text.strip():
            self.app.notify("Log is empty", timeout=2)
            return
        self.app.copy_to_clipboard(text)
        self.app.notify("Log copied", timeout=2)


class PanelLogHandler(logging.Handler):
    """Routes ``logging`` records into a ``LogPanel``."""

    def __init__(self, panel: LogPanel) -> None:
        super().__init__(level=logging.DEBUG)
        self._panel = panel

    def emit(self, record: logging.LogRecord) -> None:
        try:
            app = self._panel.app
            if app._thread_id != threading.get_ident():
                app.call_from_thread(self._panel.add_record, record)
            else:
                self._panel.add_record(record)
        except Exception:
            self.handleError(record)
