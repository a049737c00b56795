"""Console output via Rich: tagged status lines plus markup for ids, names and vaults.

Errors and debug traces go to stderr so piped ``list`` output stays clean.
Messages are Rich markup; user-supplied text must go through the helpers
below (or :func:`rich.markup.escape`) before being interpolated.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

console = Console(highlight=False)
_err_console = Console(highlight=False, stderr=True)

_verbose = False

ID_COLOUR = "#3498db"
NAME_COLOUR = "#27ae60"
VAULT_COLOUR = "#f39c12"
COMMAND_COLOUR = "#9b59b6"
GREY = "#636e72"


def set_verbose(enabled: bool) -> None:
    global _verbose
    _verbose = enabled


def _tagged(out: Console, tag: str, colour: str, msg: str) -> None:
    out.print(f"[{colour}]\\[{tag}][/{colour}] {msg}")


def success(msg: str) -> None:
    _tagged(console, "OK", "green", msg)


def warn(msg: str) -> None:
    _tagged(console, "WARN", "yellow", msg)


def error(msg: str) -> None:
    _tagged(_err_console, "ERROR", "red", msg)


def debug(msg: str) -> None:
    # Debug lines carry raw task names and paths, so they are never markup.
    if _verbose:
        _err_console.print(f"[DEBUG] {msg}", style="dim", markup=False)


# ── Markup helpers ───────────────────────────────────────────────────


def task_id(value: int) -> str:
    return f"[{ID_COLOUR}]{value}[/{ID_COLOUR}]"


def task_name(value: str) -> str:
    return f"[bold {NAME_COLOUR}]{escape(value)}[/bold {NAME_COLOUR}]"


def vault(value: str) -> str:
    return f"[bold {VAULT_COLOUR}]{escape(value)}[/bold {VAULT_COLOUR}]"


def command(value: str) -> str:
    return f"[bold {COMMAND_COLOUR}]{escape(value)}[/bold {COMMAND_COLOUR}]"


def greyed_out(value: str) -> str:
    return f"[{GREY}]{escape(value)}[/{GREY}]"
