"""Central UI handler for varaudit.

Single source of truth for Rich console styling. Import this instead of
instantiating Console() in every command file.

Usage:
    from varaudit.pipeline.ui import console, print_warning

    console.print("[success]No defects found[/success]")
    print_warning("No files to lint")

Report lines may contain PHP source text such as `$a[0]`, so they are always
printed with markup disabled.
"""

import sys

from rich.console import Console
from rich.theme import Theme

# Severity colors follow the classic lint palette: red errors, yellow
# warnings, green notices
VARAUDIT_THEME = Theme({
    "info": "bold cyan",
    "warning": "yellow",
    "error": "red",
    "notice": "green",
    "success": "bold green",
    "path": "bold cyan",
    "dim": "dim white",
})

# Single console instance - import this, don't create your own
console = Console(
    theme=VARAUDIT_THEME,
    force_terminal=sys.stdout.isatty(),
    soft_wrap=True,
)


def create_console(color: str = "auto") -> Console:
    """Console for one command run; color is 'auto', 'always' or 'never'."""
    if color == "always":
        return Console(theme=VARAUDIT_THEME, force_terminal=True, soft_wrap=True)
    if color == "never":
        return Console(theme=VARAUDIT_THEME, color_system=None, soft_wrap=True)
    return console


def print_plain(out: Console, text: str, style: str | None = None) -> None:
    """Print text verbatim, optionally in one theme style."""
    out.print(text, style=style, markup=False, highlight=False, emoji=False)


def print_warning(msg: str) -> None:
    """Print a warning message in yellow."""
    console.print(f"[warning]WARNING:[/warning] {msg}", highlight=False)
