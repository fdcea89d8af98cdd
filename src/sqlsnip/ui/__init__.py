"""Terminal UI module for sqlsnip.

Provides a Textual-based TUI over the session store.

Module structure (each module hides a design decision):
- widgets.py: Custom widgets (explorer, result grid, sidebar panels, log)
- screens.py: Modal dialogs (safety approval, dbt export)
- styles.py: CSS styling (layout decisions)
- themes.py: Color palettes and theme configuration
- formatting.py: How values and timestamps are displayed
- app.py: Application orchestration (user interaction flow)
"""

from .app import SnippetApp, create_app, run_textual_tui
from .config import LogLevel
from .screens import DbtExportScreen, SafetyApprovalScreen

__all__ = [
    "DbtExportScreen",
    "LogLevel",
    "SafetyApprovalScreen",
    "SnippetApp",
    "create_app",
    "run_textual_tui",
]
