"""Lint PHP sources for use of possibly-uninitialized variables."""

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

import click

from varaudit.config_runtime import LintConfig, load_runtime_config
from varaudit.exceptions import AnalysisError
from varaudit.files import FilesystemProvider, GitRevisionProvider
from varaudit.lint import CodeDefect, LintPlugin, Severity, create_lint_plugins, get_lint_report
from varaudit.parsers import PhpFile
from varaudit.pipeline.ui import create_console, print_plain, print_warning
from varaudit.utils.error_handler import handle_exceptions
from varaudit.utils.logging import logger


@dataclass
class FileReport:
    """Outcome of analyzing one file: its defects, or why it couldn't be parsed."""

    filename: str
    defects: list[CodeDefect] = field(default_factory=list)
    error: str | None = None

    def count(self, severity: Severity) -> int:
        return sum(1 for d in self.defects if d.severity is severity)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "file": self.filename,
            "defects": [d.to_dict() for d in self.defects],
        }
        if self.error is not None:
            data["error"] = self.error
        return data


def analyze_file(provider, filename: str, plugins: list[LintPlugin]) -> FileReport:
    """Parse and lint one file; a file that can't be analyzed yields an error report."""
    try:
        pf = PhpFile(filename, provider.get_file_content(filename))
        return FileReport(filename, get_lint_report(pf, plugins))
    except (AnalysisError, OSError) as e:
        logger.debug("Can't parse {file}: {err}", file=filename, err=e)
        return FileReport(filename, error=str(e))


def lint_files(provider, plugins: list[LintPlugin], jobs: int = 1) -> list[FileReport]:
    """Analyze every file of provider, reports returned in file order."""
    files = provider.get_files()
    logger.info("Linting {count} files with {jobs} worker(s)", count=len(files), jobs=jobs)

    if jobs <= 1 or len(files) <= 1:
        return [analyze_file(provider, f, plugins) for f in files]

    with ThreadPoolExecutor(max_workers=jobs) as executor:
        futures = [executor.submit(analyze_file, provider, f, plugins) for f in files]
        return [future.result() for future in futures]


def summarize(reports: list[FileReport]) -> dict[str, int]:
    return {
        "total_files": sum(1 for r in reports if r.error is None),
        "files_with_defects": sum(1 for r in reports if r.defects),
        "errors": sum(r.count(Severity.ERROR) for r in reports),
        "warnings": sum(r.count(Severity.WARNING) for r in reports),
        "notices": sum(r.count(Severity.NOTICE) for r in reports),
        "unparsed_files": sum(1 for r in reports if r.error is not None),
    }


def format_defect(defect: CodeDefect) -> str:
    return "    line %4d: %-8s: %s (%s)" % (
        defect.line,
        defect.severity.label,
        defect.message,
        defect.token_text,
    )


def build_lint_config(
    config_path: str | None,
    report_level: str | None,
    no_global_scope: bool,
    global_vars: tuple[str, ...],
    init_by_reference: tuple[str, ...],
    signatures: tuple[str, ...],
    exclude: tuple[str, ...],
    color: str | None,
) -> LintConfig:
    """Runtime configuration with command line options applied on top."""
    config = LintConfig.from_runtime(load_runtime_config(config_path=config_path))
    if report_level:
        config.report_level = report_level
    if no_global_scope:
        config.check_global_scope = False
    if color:
        config.color = color
    config.global_vars.extend(global_vars)
    config.init_by_reference.extend(init_by_reference)
    config.function_signatures.extend(signatures)
    config.exclude.extend(exclude)
    return config


@click.command("lint")
@click.argument("paths", nargs=-1, type=click.Path(exists=True))
@click.option(
    "--report-level",
    type=click.Choice(["error", "errors", "warning", "warnings", "notice", "notices"]),
    help="Lowest severity to report (default from config: notice)",
)
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Config file (default: .varaudit/config.json)")
@click.option("--no-global-scope", is_flag=True, help="Don't report unknown variables at file scope")
@click.option("--global-var", "global_vars", multiple=True, help="Variable known at file scope (repeatable)")
@click.option(
    "--init-by-reference",
    multiple=True,
    help="'name, pos, ...' - zero-based positions the function assigns by reference (repeatable)",
)
@click.option(
    "--signature",
    "signatures",
    multiple=True,
    help="Function prototype like 'Foo::bar($a, &$b)' (repeatable)",
)
@click.option("--exclude", multiple=True, help="Path to skip, file or directory (repeatable)")
@click.option("--git-rev", help="Lint the files of a git revision instead of the working tree")
@click.option("--repo", default=".", type=click.Path(file_okay=False), help="Git repository for --git-rev")
@click.option("--color", type=click.Choice(["auto", "always", "never"]), help="Colorize report lines")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=1, help="Files analyzed in parallel")
@click.option("--verbose", "-v", is_flag=True, help="Print totals after the report")
@click.pass_context
@handle_exceptions
def lint(
    ctx,
    paths,
    report_level,
    config_path,
    no_global_scope,
    global_vars,
    init_by_reference,
    signatures,
    exclude,
    git_rev,
    repo,
    color,
    output_format,
    jobs,
    verbose,
):
    """Find reads of variables that may be uninitialized in PHP sources.

    Every file is scanned once, statement by statement. A variable read before
    anything in its scope could have assigned it is reported:

    \b
      error    variable is certainly not defined (strict scope)
      warning  variable is possibly not defined, or autovivified
      notice   the analysis can't be reliable from here on, or a
               value is never used

    Functions start strict; the file scope and any scope that hits
    extract(), $$name, include/require or eval go relaxed.

    \b
    EXAMPLES:
      varaudit lint                        # all *.php below .
      varaudit lint src --exclude src/vendor
      varaudit lint --report-level warnings --jobs 4
      varaudit lint --git-rev HEAD~1       # files of a committed revision
      varaudit lint --signature 'Db::fetch($sql, &$row)'

    \b
    EXIT CODES:
      0 = No errors or warnings reported
      1 = At least one error or warning reported
    """
    config = build_lint_config(
        config_path,
        report_level,
        no_global_scope,
        global_vars,
        init_by_reference,
        signatures,
        exclude,
        color,
    )
    try:
        level = Severity.from_name(config.report_level)
        plugins = create_lint_plugins(config, level)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    if git_rev:
        if paths:
            raise click.UsageError("PATHS can't be combined with --git-rev")
        try:
            provider = GitRevisionProvider(repo, git_rev, config.extensions, config.exclude)
        except ValueError as e:
            raise click.ClickException(str(e)) from e
    else:
        provider = FilesystemProvider(paths or ["."], config.extensions, config.exclude)

    reports = lint_files(provider, plugins, jobs)
    totals = summarize(reports)

    if output_format == "json":
        payload = {
            "files": [r.to_dict() for r in reports if r.defects or r.error],
            "summary": totals,
        }
        if git_rev:
            payload["revision"] = provider.persistent_id
        click.echo(json.dumps(payload, indent=2))
    else:
        out = create_console(config.color)
        if not reports:
            print_warning("No files to lint")
        for report in reports:
            if report.error is not None:
                print_plain(out, f"Can't parse file '{report.filename}': {report.error}")
                continue
            if not report.defects:
                continue
            print_plain(out, f"File: {report.filename}")
            for defect in report.defects:
                print_plain(out, format_defect(defect), style=defect.severity.label)

        if verbose:
            print_plain(out, f"Total files:          {totals['total_files']}")
            print_plain(out, f"Files with defects:   {totals['files_with_defects']}")
            print_plain(out, f"Errors:               {totals['errors']}")
            print_plain(out, f"Warnings:             {totals['warnings']}")
            print_plain(out, f"Notices:              {totals['notices']}")

    if totals["errors"] + totals["warnings"] > 0:
        ctx.exit(1)
