"""Prompt templates for the SQL intelligence operations.

Each operation has a ``<name>.txt`` template next to this module. A template
can be overridden without reinstalling by placing a file of the same name in
``$SQLSNIP_PROMPTS_DIR`` or in ``./prompts``, checked in that order.
Templates use ``str.format`` placeholders; literal braces are doubled.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

_PACKAGE_DIR = Path(__file__).parent


def _search_path() -> list[Path]:
    dirs = [Path.cwd() / "prompts", _PACKAGE_DIR]
    override = os.getenv("SQLSNIP_PROMPTS_DIR")
    if override:
        dirs.insert(0, Path(override).expanduser())
    return dirs


@lru_cache(maxsize=16)
def load_prompt(name: str) -> str:
    """Return the raw template text for ``name``.

    Raises:
        FileNotFoundError: If no directory on the search path has the template
    """
    candidates = [d / f"{name}.txt" for d in _search_path()]
    for path in candidates:
        if path.is_file():
            return path.read_text(encoding="utf-8")
    searched = "\n".join(f"  - {path}" for path in candidates)
    raise FileNotFoundError(f"Prompt '{name}' not found. Searched:\n{searched}")


def render_prompt(name: str, **values: Any) -> str:
    """Fill in a template's placeholders.

    Raises:
        KeyError: If the template uses a placeholder not given in ``values``
    """
    try:
        return load_prompt(name).format(**values).strip()
    except KeyError as e:
        raise KeyError(f"Prompt '{name}' needs a value for {e}") from None


def clear_cache() -> None:
    """Forget loaded templates so edited files are picked up."""
    load_prompt.cache_clear()


__all__ = [
    "load_prompt",
    "render_prompt",
    "clear_cache",
]
