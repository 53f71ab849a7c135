"""
Console output for npmaudit, rendered with Rich.

Everything the user is meant to read goes through here: status lines,
the audit table and the upgrade command. Diagnostics belong to
:mod:`npmaudit.utils.logger`.
"""

from __future__ import annotations

import os
import sys
from typing import Any, Dict, List, Optional

from rich.table import Table
from rich.theme import Theme
from rich.console import Console

from npmaudit.utils.semver import OUTDATED_LEVELS

NPMAUDIT_THEME = Theme(
    {
        "success": "bold green",
        "error": "bold red",
        "warning": "bold yellow",
        "not_found": "red",
        "outdated.major": "red",
        "outdated.minor": "yellow",
        "outdated.patch": "green",
        "outdated.ok": "dim",
    }
)

#: Column order and per-column Rich options of the audit table.
AUDIT_COLUMNS: Dict[str, Dict[str, Any]] = {
    "Package": {"style": "bold cyan", "no_wrap": True},
    "Type": {"justify": "center"},
    "Declared": {"justify": "center", "style": "dim"},
    "Latest": {"justify": "center", "style": "bold green"},
    "Target": {"justify": "center", "style": "bright_cyan"},
    "Outdated": {"justify": "center"},
    "Link": {"no_wrap": True},
}

_console: Optional[Console] = None


def _should_use_color() -> bool:
    """Return True if colored output should be enabled."""
    if os.environ.get("NO_COLOR") or os.environ.get("CI"):
        return False
    try:
        return sys.stdout.isatty()
    except (AttributeError, OSError):
        return False


def _get_console() -> Console:
    global _console

    if _console is None:
        use_color = _should_use_color()
        _console = Console(
            theme=NPMAUDIT_THEME,
            no_color=not use_color,
            highlight=use_color,
        )
    return _console


def reconfigure_console() -> None:
    """Drop the cached console so the next print re-reads NO_COLOR."""
    global _console
    _console = None


def print_success(message: str, *, prefix: str = "[OK]") -> None:
    _get_console().print(f"{prefix} {message}", style="success")


def print_error(message: str, *, prefix: str = "[ERROR]") -> None:
    _get_console().print(f"{prefix} {message}", style="error")


def print_warning(message: str, *, prefix: str = "[WARNING]") -> None:
    _get_console().print(f"{prefix} {message}", style="warning")


def print_table(
    data: List[Dict[str, Any]],
    *,
    headers: Optional[List[str]] = None,
    title: Optional[str] = None,
    column_styles: Optional[Dict[str, Dict[str, Any]]] = None,
) -> None:
    """Render row dictionaries as a Rich table.

    Args:
        data: List of row dictionaries. Values may contain Rich markup.
        headers: Column order. Defaults to keys of the first row.
        title: Optional table title.
        column_styles: Per-column ``Table.add_column`` options.
    """
    if not data:
        return

    if headers is None:
        headers = list(data[0].keys())

    table = Table(title=title, show_header=True, header_style="bold")

    column_styles = column_styles or {}
    for header in headers:
        config = column_styles.get(header, {})
        table.add_column(
            header,
            style=config.get("style"),
            justify=config.get("justify", "default"),
            no_wrap=config.get("no_wrap", False),
            overflow="fold",
        )

    for row in data:
        table.add_row(*(str(row.get(h, "")) for h in headers))

    _get_console().print(table)


def print_audit_table(project_name: str, rows: List[Dict[str, Any]]) -> None:
    """Render audit rows (keyed by :data:`AUDIT_COLUMNS`) for ``project_name``."""
    print_table(
        rows,
        headers=list(AUDIT_COLUMNS),
        title=f"Audit npm Dependencies - {project_name}",
        column_styles=AUDIT_COLUMNS,
    )


def print_upgrade_command(command: str) -> None:
    """Print the ``npm i`` command, or a success line if there is none."""
    if not command:
        print_success("All packages are up to date!")
        return
    _get_console().print("\n[bold]Upgrade command:[/bold]")
    _get_console().print(command, soft_wrap=True, markup=False, highlight=False)


def colorize_outdated(classification: str) -> str:
    """Return ``classification`` wrapped in its theme style as Rich markup.

    Example::

        >>> colorize_outdated("major")
        '[outdated.major]major[/outdated.major]'
    """
    if classification not in OUTDATED_LEVELS:
        return classification
    style = f"outdated.{classification}"
    return f"[{style}]{classification}[/{style}]"


def not_found_marker(text: str) -> str:
    """Return ``text`` styled as an unresolved package."""
    return f"[not_found]{text}[/not_found]"
