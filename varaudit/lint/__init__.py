"""Lint analyzers for PHP sources."""

from .base import CodeDefect, LintPlugin, Severity
from .registry import LINT_PLUGINS, create_lint_plugins, get_lint_report
from .uninitialized_vars import UninitializedVarsLint

__all__ = [
    "CodeDefect",
    "LINT_PLUGINS",
    "LintPlugin",
    "Severity",
    "UninitializedVarsLint",
    "create_lint_plugins",
    "get_lint_report",
]
