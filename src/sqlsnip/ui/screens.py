"""Modal screens for the TUI.

This module hides the design decisions about:
- Safety approval dialog appearance (CSS, layout)
- dbt export presentation
- Keyboard shortcuts for dialogs

To change how the dialogs look, modify only this file.
"""

from rich.markup import escape
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, LoadingIndicator, Static, TabbedContent, TabPane, TextArea

from ..gateway import DbtModel, SafetyCheck


class SafetyApprovalScreen(ModalScreen[bool]):
    """Lists safety warnings and asks whether to run anyway.

    Dismisses with True to run without a second check, False to abort.
    """

    CSS = """
    SafetyApprovalScreen {
        align: center middle;
        background: $background 70%;
    }

    #approval-dialog {
        width: 72;
        height: auto;
        max-height: 28;
        border: tall $warning;
        background: $surface;
        padding: 1 2;
    }

    #approval-title {
        width: 100%;
        text-align: center;
        text-style: bold;
        color: $warning;
        padding: 0 0 1 0;
        border-bottom: solid $border;
        margin-bottom: 1;
    }

    #approval-warnings {
        height: auto;
        max-height: 14;
        padding: 1 2;
        background: $panel;
        border: round $border;
    }

    #approval-suggestions {
        padding: 1 0 0 0;
        color: $text-muted;
    }

    #approval-buttons {
        width: 100%;
        height: 3;
        align: center middle;
        margin-top: 1;
    }

    #approval-buttons Button {
        margin: 0 1;
        min-width: 16;
    }
    """

    BINDINGS = [
        Binding("y", "confirm", "Run anyway", show=False),
        Binding("n", "abort", "Abort", show=False),
        Binding("escape", "abort", "Abort", show=False),
    ]

    def __init__(self, assessment: SafetyCheck | None) -> None:
        super().__init__()
        self._assessment = assessment

    def compose(self) -> ComposeResult:
        warnings = self._assessment.warnings if self._assessment else []
        suggestions = self._assessment.suggestions if self._assessment else ""
        with Vertical(id="approval-dialog"):
            yield Static("Potentially Destructive Query", id="approval-title")
            with VerticalScroll(id="approval-warnings"):
                if warnings:
                    for warning in warnings:
                        yield Static(f"[yellow]![/yellow] {escape(warning)}")
                else:
                    yield Static("[yellow]![/yellow] The query was assessed as unsafe.")
            if suggestions:
                yield Static(escape(suggestions), id="approval-suggestions")
            with Horizontal(id="approval-buttons"):
                yield Button("Confirm & Run", id="btn-confirm", variant="error")
                yield Button("Abort", id="btn-abort", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "btn-confirm")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_abort(self) -> None:
        self.dismiss(False)


class DbtExportScreen(ModalScreen[None]):
    """Shows the generated dbt model and schema.yml.

    Opens immediately with a loading indicator; ``show_model`` fills it in
    once generation completes.
    """

    CSS = """
    DbtExportScreen {
        align: center middle;
        background: $background 70%;
    }

    #dbt-dialog {
        width: 90%;
        height: 85%;
        border: tall $primary;
        background: $surface;
        padding: 1 2;
    }

    #dbt-title {
        width: 100%;
        text-style: bold;
        color: $primary;
        padding: 0 0 1 0;
    }

    #dbt-tabs {
        height: 1fr;
    }

    #dbt-tabs TextArea {
        height: 1fr;
    }

    #dbt-tip {
        color: $text-muted;
        padding: 1 0 0 0;
    }

    #dbt-buttons {
        width: 100%;
        height: 3;
        align: right middle;
    }

    #dbt-buttons Button {
        margin: 0 0 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "close", "Close", show=False),
        Binding("c", "copy", "Copy", show=False),
    ]

    def __init__(self, model_name: str, model: DbtModel | None = None) -> None:
        super().__init__()
        self._model_name = model_name
        self._model = model
        self._ready = False

    def compose(self) -> ComposeResult:
        with Vertical(id="dbt-dialog"):
            yield Static(f"Export as dbt Model: {escape(self._model_name)}", id="dbt-title")
            yield LoadingIndicator(id="dbt-loading")
            with TabbedContent(id="dbt-tabs"):
                with TabPane("model.sql", id="dbt-model-tab"):
                    yield TextArea("", read_only=True, id="dbt-model-sql")
                with TabPane("schema.yml", id="dbt-schema-tab"):
                    yield TextArea("", read_only=True, id="dbt-schema-yaml")
            yield Static(
                "dbt models use CTEs and modular YAML files for better maintainability.",
                id="dbt-tip",
            )
            with Horizontal(id="dbt-buttons"):
                yield Button("Copy", id="btn-copy", variant="primary")
                yield Button("Close", id="btn-close")

    def on_mount(self) -> None:
        self._ready = True
        self.show_model(self._model)

    def show_model(self, model: DbtModel | None) -> None:
        """Display ``model``; None shows the loading indicator."""
        self._model = model
        if not self._ready:
            return
        self.query_one("#dbt-loading").display = model is None
        self.query_one("#dbt-tabs").display = model is not None
        if model is not None:
            self.query_one("#dbt-model-sql", TextArea).text = model.model_sql
            self.query_one("#dbt-schema-yaml", TextArea).text = model.schema_yaml

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "btn-copy":
            self.action_copy()
        else:
            self.action_close()

    def action_copy(self) -> None:
        """Copy the file shown in the active tab."""
        if self._model is None:
            return
        tabs = self.query_one("#dbt-tabs", TabbedContent)
        text = self._model.schema_yaml if tabs.active == "dbt-schema-tab" else self._model.model_sql
        self.app.copy_to_clipboard(text)
        self.app.notify("Copied to clipboard", timeout=2)

    def action_close(self) -> None:
        self.dismiss(None)
