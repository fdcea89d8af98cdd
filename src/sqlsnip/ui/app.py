"""Main Textual TUI application.

Renders the store's state and turns user interaction into controller calls.
Long-running controller operations run as background async workers so the
interface stays responsive.
"""

import asyncio
import logging
from collections.abc import Awaitable

from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, ContentSwitcher, Footer, Header, Input, Tabs, TextArea
from textual.widgets import Tab as TabLabel

from ..executor import MockExecutor
from ..gateway import ChatSession, SqlIntelligence
from ..harness import run_suite
from ..llm import LLMProvider
from ..state import AppState, BusyTask, GatePhase, SessionConfig, SnippetController, Store, Tab, initial_state
from ..state.controller import ProviderFactory
from .config import LogLevel
from .screens import DbtExportScreen, SafetyApprovalScreen
from .styles import APP_CSS
from .themes import EDITOR_DARK
from .widgets import (
    ChatPanel,
    HistoryPanel,
    LogPanel,
    PanelLogHandler,
    ResultPanel,
    SearchPanel,
    SettingsPanel,
    SnippetExplorer,
    SnippetInfo,
    TestDashboard,
)

logger = logging.getLogger(__name__)

TAB_LABELS = {
    Tab.FILES: "Files",
    Tab.SEARCH: "Search",
    Tab.HISTORY: "History",
    Tab.SETTINGS: "Settings",
    Tab.TESTS: "Tests",
    Tab.CHAT: "Chat",
}


class SnippetApp(App):
    """Textual TUI for managing and running SQL snippets."""

    CSS = APP_CSS
    TITLE = "SQL Snippet Master"

    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit"),
        Binding("f5", "run_query", "Run"),
        Binding("ctrl+s", "save", "Save"),
        Binding("f6", "lint", "Lint"),
        Binding("f7", "export_dbt", "dbt"),
        Binding("ctrl+n", "new_snippet", "New"),
        Binding("f8", "delete_snippet", "Delete"),
        Binding("ctrl+k", "clear_chat", "Clear Chat"),
        Binding("ctrl+d", "toggle_log", "Log"),
    ]

    def __init__(
        self,
        controller: SnippetController,
        executor: MockExecutor,
        log_level: str = "warning",
    ) -> None:
        super().__init__()
        self._controller = controller
        self._store = controller.store
        self._executor = executor
        self._log_level = log_level
        self._rendered: AppState | None = None
        self._dbt_screen: DbtExportScreen | None = None
        self._log_handler: PanelLogHandler | None = None
        self._unsubscribe = None

    def compose(self) -> ComposeResult:
        state = self._store.state
        yield Header(show_clock=True)

        with Horizontal(id="main"):
            with Vertical(id="sidebar"):
                yield Tabs(
                    *(TabLabel(label, id=f"tab-{tab}") for tab, label in TAB_LABELS.items()),
                    active=f"tab-{state.active_tab}",
                    id="sidebar-tabs",
                )
                with ContentSwitcher(initial=f"view-{state.active_tab}", id="sidebar-views"):
                    yield SnippetExplorer(id="view-files")
                    yield SearchPanel(id="view-search")
                    yield HistoryPanel(id="view-history")
                    yield SettingsPanel(state.config, id="view-settings")
                    yield TestDashboard(id="view-tests")
                    yield ChatPanel(id="view-chat")

            with Vertical(id="workspace"):
                with Horizontal(id="toolbar"):
                    yield Input(placeholder="Snippet name", id="snippet-name")
                    yield Button("Run", id="btn-run", variant="success")
                    yield Button("Save", id="btn-save", variant="primary")
                    yield Button("Lint", id="btn-lint")
                    yield Button("dbt", id="btn-dbt")
                    yield Button("New", id="btn-new")
                    yield Button("Delete", id="btn-delete", variant="error")
                yield TextArea.code_editor("", id="editor")
                yield SnippetInfo(id="snippet-info")
                yield ResultPanel(id="result-panel")

        yield LogPanel(id="log-panel")
        yield Footer()

    def on_mount(self) -> None:
        self.register_theme(EDITOR_DARK)
        self.theme = "sqlsnip-dark"

        editor = self.query_one("#editor", TextArea)
        if "sql" in editor.available_languages:
            editor.language = "sql"

        log_panel = self.query_one("#log-panel", LogPanel)
        log_panel.log_level = LogLevel.from_string(self._log_level)
        if log_panel.log_level < LogLevel.WARNING:
            log_panel.display = True
        self._log_handler = PanelLogHandler(log_panel)
        package_logger = logging.getLogger("sqlsnip")
        package_logger.addHandler(self._log_handler)
        package_logger.setLevel(log_panel.log_level)

        self._unsubscribe = self._store.subscribe(self._render_state)
        self._render_state(self._store.state)
        logger.info("TUI started with %s", self._controller.intelligence.model or "no LLM")

    def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        if self._log_handler is not None:
            logging.getLogger("sqlsnip").removeHandler(self._log_handler)

    # Rendering

    def _render_state(self, state: AppState) -> None:
        """Push changed parts of ``state`` into the widgets."""
        old = self._rendered
        self._rendered = state

        def changed(*fields: str) -> bool:
            return old is None or any(getattr(old, f) != getattr(state, f) for f in fields)

        if changed("active_tab"):
            self.query_one("#sidebar-views", ContentSwitcher).current = f"view-{state.active_tab}"
            tabs = self.query_one("#sidebar-tabs", Tabs)
            if tabs.active != f"tab-{state.active_tab}":
                tabs.active = f"tab-{state.active_tab}"

        if changed("snippets", "active_id"):
            self.query_one("#view-files", SnippetExplorer).refresh_snippets(state)

        if changed("editor"):
            name_input = self.query_one("#snippet-name", Input)
            if name_input.value != state.editor.name:
                name_input.value = state.editor.name
            editor = self.query_one("#editor", TextArea)
            if editor.text != state.editor.code:
                editor.text = state.editor.code

        if changed("snippets", "active_id", "lint", "safety", "gate_phase"):
            self.query_one("#snippet-info", SnippetInfo).show_state(state)

        if changed("query_result", "busy"):
            panel = self.query_one("#result-panel", ResultPanel)
            executing = state.is_busy(BusyTask.EXECUTING)
            panel.set_class(executing, "executing")
            if executing:
                panel.show_running()
            elif changed("query_result") or (old is not None and old.is_busy(BusyTask.EXECUTING)):
                panel.show_result(state.query_result)

        if changed("search_results", "snippets", "busy"):
            self.query_one("#view-search", SearchPanel).show_results(
                state.matched_snippets(), state.is_busy(BusyTask.SEARCHING)
            )

        if changed("history"):
            self.query_one("#view-history", HistoryPanel).show_history(state.history)

        if changed("chat", "busy"):
            self.query_one("#view-chat", ChatPanel).show_transcript(
                state.chat, state.is_busy(BusyTask.CHATTING)
            )

        if changed("gate_phase") and state.gate_phase is GatePhase.BLOCKED:
            self.push_screen(SafetyApprovalScreen(state.safety), self._on_approval)

        if changed("show_dbt_export") and state.show_dbt_export and self._dbt_screen is None:
            self._dbt_screen = DbtExportScreen(state.editor.name or "Untitled Model", state.dbt_export)
            self.push_screen(self._dbt_screen, self._on_dbt_closed)
        elif changed("dbt_export") and self._dbt_screen is not None:
            self._dbt_screen.show_model(state.dbt_export)

        if changed("config", "busy"):
            busy = ", ".join(sorted(state.busy))
            model = self._controller.intelligence.model or "fallbacks only"
            self.sub_title = f"{state.config.dialect} | AI: {model}" + (f" | {busy}..." if busy else "")

    # Widget events

    @on(Tabs.TabActivated, "#sidebar-tabs")
    def _tab_activated(self, event: Tabs.TabActivated) -> None:
        tab = (event.tab.id or "").removeprefix("tab-")
        if tab and tab != self._store.state.active_tab:
            self._controller.set_tab(tab)

    @on(Input.Changed, "#snippet-name")
    def _name_changed(self, event: Input.Changed) -> None:
        if event.value != self._store.state.editor.name:
            self._controller.rename(event.value)

    @on(TextArea.Changed, "#editor")
    def _code_changed(self, event: TextArea.Changed) -> None:
        text = event.text_area.text
        if text != self._store.state.editor.code:
            self._controller.edit_code(text)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        actions = {
            "btn-run": self.action_run_query,
            "btn-save": self.action_save,
            "btn-lint": self.action_lint,
            "btn-dbt": self.action_export_dbt,
            "btn-new": self.action_new_snippet,
            "btn-delete": self.action_delete_snippet,
        }
        action = actions.get(event.button.id or "")
        if action is not None:
            action()

    def on_snippet_explorer_chosen(self, event: SnippetExplorer.Chosen) -> None:
        self._controller.select_snippet(event.snippet_id)

    def on_search_panel_requested(self, event: SearchPanel.Requested) -> None:
        self._attempt("Search", self._controller.search(event.query))

    def on_history_panel_loaded(self, event: HistoryPanel.Loaded) -> None:
        if event.rerun:
            self._attempt("Execution", self._controller.rerun_from_history(event.entry_id))
        else:
            self._controller.load_from_history(event.entry_id)

    def on_settings_panel_changed(self, event: SettingsPanel.Changed) -> None:
        try:
            self._controller.update_config(**{event.field: event.value})
        except ValueError as e:
            logger.warning("Rejected setting %s: %s", event.field, e)
            self.notify(f"Invalid {event.field}", severity="error", timeout=3)
            return
        self.notify("Settings updated", timeout=2)

    def on_chat_panel_sent(self, event: ChatPanel.Sent) -> None:
        self._attempt("Chat", self._controller.send_chat(event.text))

    def on_chat_panel_cleared(self, event: ChatPanel.Cleared) -> None:
        self.action_clear_chat()

    def on_test_dashboard_run_requested(self, event: TestDashboard.RunRequested) -> None:
        self._run_tests()

    # Screen callbacks

    def _on_approval(self, confirmed: bool | None) -> None:
        if confirmed:
            self._attempt("Execution", self._controller.confirm_run())
        else:
            self._controller.abort_run()
            self.notify("Execution aborted", severity="warning", timeout=2)

    def _on_dbt_closed(self, result: None) -> None:
        self._dbt_screen = None
        self._controller.close_dbt_export()

    # Workers

    @work
    async def _attempt(self, label: str, operation: Awaitable) -> None:
        """Await a controller operation in the background, reporting failures."""
        try:
            await operation
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("%s failed", label)
            self.notify(f"{label} failed: {str(e)[:50]}", severity="error", timeout=5)

    @work(exclusive=True, group="tests")
    async def _run_tests(self) -> None:
        dashboard = self.query_one("#view-tests", TestDashboard)
        dashboard.mark_running()
        outcomes = await run_suite(self._controller.intelligence, self._executor, on_outcome=dashboard.record)
        dashboard.finish(outcomes)

    # Actions

    def action_run_query(self) -> None:
        self._attempt("Execution", self._controller.run_query())

    def action_save(self) -> None:
        if self._store.state.active_id is None:
            self.notify("Create or select a snippet to save", severity="warning", timeout=3)
            return
        self._attempt("Save", self._controller.save_snippet())

    def action_lint(self) -> None:
        self._attempt("Lint", self._controller.lint_and_format())

    def action_export_dbt(self) -> None:
        self._attempt("dbt export", self._controller.export_dbt())

    def action_new_snippet(self) -> None:
        self._controller.new_snippet()
        self.query_one("#editor", TextArea).focus()

    def action_delete_snippet(self) -> None:
        self._controller.delete_snippet()

    def action_clear_chat(self) -> None:
        self._controller.clear_chat()
        self.notify("Chat cleared", timeout=2)

    def action_toggle_log(self) -> None:
        is_visible = self.query_one("#log-panel", LogPanel).toggle()
        self.notify(f"Log panel {'shown' if is_visible else 'hidden'}", timeout=2)


def create_app(
    config: SessionConfig | None = None,
    llm: LLMProvider | None = None,
    provider_factory: ProviderFactory | None = None,
    executor: MockExecutor | None = None,
    log_level: str = "warning",
) -> SnippetApp:
    """Wire a store, gateway, chat session and controller into the app."""
    store = Store(initial_state(config))
    intelligence = SqlIntelligence(llm)
    executor = executor or MockExecutor()
    controller = SnippetController(
        store,
        intelligence,
        executor,
        chat=ChatSession(llm, store.state.config.dialect),
        provider_factory=provider_factory,
    )
    return SnippetApp(controller, executor, log_level=log_level)


async def run_textual_tui(
    config: SessionConfig | None = None,
    llm: LLMProvider | None = None,
    provider_factory: ProviderFactory | None = None,
    log_level: str = "warning",
) -> None:
    """Run the Textual TUI.

    Args:
        config: Initial session config
        llm: LLM provider instance; None runs on fallbacks
        provider_factory: Rebuilds the provider when keys change in settings
        log_level: Log level for the panel (debug/info/warning/error)
    """
    app = create_app(config, llm, provider_factory, log_level=log_level)
    try:
        await app.run_async()
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
