"""Pytest configuration and fixtures."""

import os

import pytest

from varaudit.config_runtime import LintConfig
from varaudit.lint import Severity, UninitializedVarsLint
from varaudit.parsers import PhpFile


def lint_php(code, report_level=Severity.WARNING, config=None, filename="test.php"):
    """Run the uninitialized-vars lint over a PHP snippet.

    Returns (token text, line, severity) triples in report order.
    """
    plugin = UninitializedVarsLint(config or LintConfig())
    plugin.set_report_level(report_level)
    report = plugin.get_report(PhpFile(filename, code))
    return [(d.token_text, d.line, d.severity) for d in report]


@pytest.fixture
def lint():
    """The lint_php helper as a fixture."""
    return lint_php


@pytest.fixture
def isolated_env(monkeypatch, tmp_path):
    """Run in an empty directory with no VARAUDIT_LINT_* overrides."""
    for name in list(os.environ):
        if name.startswith("VARAUDIT_LINT_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    return tmp_path
