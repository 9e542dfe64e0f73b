"""Crash handling for the analysis commands.

Usage problems (bad options, invalid prototypes) are ClickExceptions and pass
through untouched. Anything else is an analyzer bug: the traceback goes to
.varaudit/error.log and the user gets a one-line summary pointing there.
"""

import traceback
from collections.abc import Callable
from datetime import datetime
from functools import wraps
from typing import Any

import click

from varaudit.utils.logging import logger

from .constants import ERROR_LOG_FILE, VA_DIR


def _append_crash_record(command: str, error: Exception) -> None:
    VA_DIR.mkdir(parents=True, exist_ok=True)
    rule = "-" * 72
    with open(ERROR_LOG_FILE, "a", encoding="utf-8") as f:
        f.write(f"{rule}\n")
        f.write(f"varaudit {command} crashed at {datetime.now().isoformat()}\n")
        f.write(f"{type(error).__name__}: {error}\n\n")
        f.write(traceback.format_exc())
        f.write(f"{rule}\n\n")


def handle_exceptions(func: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap a command so an analyzer crash ends in a ClickException, never a raw traceback."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (click.ClickException, click.exceptions.Exit):
            raise
        except Exception as e:
            command = func.__name__
            logger.opt(exception=True).error(
                "varaudit {command} aborted by {kind}: {err}",
                command=command,
                kind=type(e).__name__,
                err=str(e),
            )
            _append_crash_record(command, e)
            raise click.ClickException(
                f"Internal error in '{command}': {type(e).__name__}: {e}\n"
                f"Details were appended to {ERROR_LOG_FILE}"
            ) from e

    return wrapper
