"""Registry of lint analyzers, keyed by report id."""

from varaudit.config_runtime import LintConfig
from varaudit.parsers import PhpFile

from .base import CodeDefect, LintPlugin, Severity
from .uninitialized_vars import UninitializedVarsLint

LINT_PLUGINS: dict[str, type[LintPlugin]] = {
    UninitializedVarsLint.report_id: UninitializedVarsLint,
}


def create_lint_plugins(
    config: LintConfig | None = None,
    report_level: Severity = Severity.WARNING,
    only: list[str] | None = None,
) -> list[LintPlugin]:
    """Instantiate the registered analyzers, optionally restricted to `only` report ids."""
    if only:
        unknown = [report_id for report_id in only if report_id not in LINT_PLUGINS]
        if unknown:
            raise ValueError(f"Unknown report id(s): {', '.join(unknown)}")

    plugins = []
    for report_id, plugin_cls in LINT_PLUGINS.items():
        if only and report_id not in only:
            continue
        plugin = plugin_cls(config)
        plugin.set_report_level(report_level)
        plugins.append(plugin)
    return plugins


def get_lint_report(pf: PhpFile, plugins: list[LintPlugin]) -> list[CodeDefect]:
    """Defects of every plugin supporting pf, in registry order."""
    report: list[CodeDefect] = []
    for plugin in plugins:
        if plugin.supports(pf):
            report.extend(plugin.get_report(pf))
    return report
