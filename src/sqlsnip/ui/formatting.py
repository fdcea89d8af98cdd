"""Text formatting utilities for the TUI.

Hides the details of how values, timestamps and SQL previews are shown.
"""

from datetime import datetime
from typing import Any

from rich.text import Text

from .config import RESULT_NULL_TEXT, SNIPPET_PREVIEW_LENGTH


def one_line(text: str, limit: int = SNIPPET_PREVIEW_LENGTH) -> str:
    """Collapse whitespace and truncate to ``limit`` characters."""
    flat = " ".join(text.split())
    if len(flat) <= limit:
        return flat
    return flat[: max(limit - 3, 0)] + "..."


def format_cell(value: Any) -> Text:
    """Render a result value; numbers are right-aligned, None shows as NULL."""
    if value is None:
        return Text(RESULT_NULL_TEXT, style="dim italic")
    if isinstance(value, bool):
        return Text(str(value).lower(), style="magenta")
    if isinstance(value, (int, float)):
        return Text(f"{value:,}" if isinstance(value, int) else str(value), style="cyan", justify="right")
    return Text(str(value))


def relative_time(moment: datetime | None, now: datetime | None = None) -> str:
    """Human-friendly age, e.g. ``3m ago``; ``never`` for None."""
    if moment is None:
        return "never"
    seconds = int(((now or datetime.now()) - moment).total_seconds())
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def format_tags(tags: tuple[str, ...] | list[str]) -> str:
    """Tags as Rich markup chips."""
    return " ".join(f"[reverse] {tag} [/reverse]" for tag in tags)
