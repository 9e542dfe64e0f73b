"""End-to-end tests for the varaudit command line."""

import json
import os

import pygit2
import pytest
from click.testing import CliRunner

from varaudit import __version__
from varaudit.cli import cli

UNDEFINED_IN_FUNCTION = """<?php
function f() {
    return $x;
}
"""

GLOBAL_READ = """<?php
echo $g;
"""

FETCH_ROW = """<?php
function f() {
    Db::fetch("sql", $row);
    return $row;
}
"""


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def project(isolated_env):
    """Empty src/ directory inside an isolated working directory."""
    (isolated_env / "src").mkdir()
    return isolated_env


def write(project, name, source):
    path = project / "src" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(source)
    return os.path.join("src", *name.split("/"))


class TestHelp:
    def test_root_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "ANALYSIS" in result.output
        assert "lint" in result.output
        assert "signatures" in result.output

    def test_lint_help_ascii(self, runner):
        """Command help must stay printable on CP1252 consoles."""
        result = runner.invoke(cli, ["lint", "--help"])
        assert result.exit_code == 0
        assert "--report-level" in result.output
        try:
            result.output.encode("ascii")
        except UnicodeEncodeError as e:
            pytest.fail(f"Non-ASCII character in varaudit lint --help: {e}")

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestLintCommand:
    def test_clean_file(self, runner, project):
        write(project, "clean.php", "<?php\nfunction f($a) {\n    return $a;\n}\n")
        result = runner.invoke(cli, ["lint", "src"])
        assert result.exit_code == 0
        assert "File:" not in result.output

    def test_no_files(self, runner, project):
        result = runner.invoke(cli, ["lint", "src"])
        assert result.exit_code == 0
        assert "WARNING: No files to lint" in result.output

    def test_error_is_reported(self, runner, project):
        name = write(project, "bad.php", UNDEFINED_IN_FUNCTION)
        result = runner.invoke(cli, ["lint", "src"])
        assert result.exit_code == 1
        assert f"File: {name}" in result.output
        assert "    line    3: error   : Use of non-defined variable ($x)" in result.output

    def test_default_path_is_cwd(self, runner, project):
        write(project, "bad.php", UNDEFINED_IN_FUNCTION)
        result = runner.invoke(cli, ["lint"])
        assert result.exit_code == 1
        assert "bad.php" in result.output

    def test_notices_do_not_fail(self, runner, project):
        write(project, "unused.php", "<?php\n$unused = 1;\n")
        result = runner.invoke(cli, ["lint", "src"])
        assert result.exit_code == 0
        assert "notice  : Value of variable is not used ($unused)" in result.output

    def test_report_level(self, runner, project):
        write(project, "global.php", GLOBAL_READ)
        result = runner.invoke(cli, ["lint", "src"])
        assert result.exit_code == 1
        assert "warning : Possible use of non-defined variable ($g)" in result.output

        result = runner.invoke(cli, ["lint", "src", "--report-level", "errors"])
        assert result.exit_code == 0
        assert result.output == ""

    def test_report_level_from_config(self, runner, project):
        write(project, "global.php", GLOBAL_READ)
        (project / ".varaudit").mkdir()
        (project / ".varaudit" / "config.json").write_text('{"lint": {"report_level": "errors"}}')
        result = runner.invoke(cli, ["lint", "src"])
        assert result.exit_code == 0

    def test_global_scope_options(self, runner, project):
        write(project, "global.php", GLOBAL_READ)
        assert runner.invoke(cli, ["lint", "src", "--no-global-scope"]).exit_code == 0
        assert runner.invoke(cli, ["lint", "src", "--global-var", "$g"]).exit_code == 0

    def test_signature_option(self, runner, project):
        write(project, "fetch.php", FETCH_ROW)
        result = runner.invoke(cli, ["lint", "src"])
        assert result.exit_code == 1
        assert "($row)" in result.output

        result = runner.invoke(cli, ["lint", "src", "--signature", "Db::fetch($sql, &$row)"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, ["lint", "src", "--init-by-reference", "Db::fetch, 1"])
        assert result.exit_code == 0, result.output

    def test_invalid_signature(self, runner, project):
        write(project, "fetch.php", FETCH_ROW)
        result = runner.invoke(cli, ["lint", "src", "--signature", "Db::fetch(&$row"])
        assert result.exit_code == 1
        assert "Invalid function prototype" in result.output

    def test_exclude(self, runner, project):
        write(project, "vendor/bad.php", UNDEFINED_IN_FUNCTION)
        result = runner.invoke(cli, ["lint", "src", "--exclude", "src/vendor"])
        assert result.exit_code == 0
        assert "bad.php" not in result.output

    def test_parse_failure(self, runner, project):
        name = write(project, "broken.php", "<?php\nfoo(;\n")
        result = runner.invoke(cli, ["lint", "src"])
        assert result.exit_code == 0
        assert f"Can't parse file '{name}': Unclosed '('" in result.output

    def test_json_output(self, runner, project):
        bad = write(project, "bad.php", UNDEFINED_IN_FUNCTION)
        write(project, "clean.php", "<?php\n")
        result = runner.invoke(cli, ["lint", "src", "--format", "json"])
        assert result.exit_code == 1
        payload = json.loads(result.output)
        assert payload["summary"]["total_files"] == 2
        assert payload["summary"]["errors"] == 1
        assert payload["files"] == [
            {
                "file": bad,
                "defects": [
                    {
                        "line": 3,
                        "severity": "error",
                        "message": "Use of non-defined variable",
                        "token": "$x",
                    }
                ],
            }
        ]

    def test_verbose_totals(self, runner, project):
        write(project, "bad.php", UNDEFINED_IN_FUNCTION)
        write(project, "global.php", GLOBAL_READ)
        result = runner.invoke(cli, ["lint", "src", "-v"])
        assert "Total files:          2" in result.output
        assert "Errors:               1" in result.output
        assert "Warnings:             1" in result.output

    def test_internal_error_is_logged(self, runner, project, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("scanner blew up")

        write(project, "clean.php", "<?php\n")
        monkeypatch.setattr("varaudit.commands.lint.lint_files", explode)
        result = runner.invoke(cli, ["lint", "src"])
        assert result.exit_code == 1
        assert "Internal error in 'lint': RuntimeError: scanner blew up" in result.output
        log = (project / ".varaudit" / "error.log").read_text()
        assert "varaudit lint crashed at" in log
        assert "RuntimeError: scanner blew up" in log

    def test_parallel_jobs_keep_file_order(self, runner, project):
        names = [write(project, f"f{i}.php", UNDEFINED_IN_FUNCTION) for i in range(5)]
        result = runner.invoke(cli, ["lint", "src", "--jobs", "3"])
        positions = [result.output.index(f"File: {name}") for name in names]
        assert positions == sorted(positions)


class TestLintGitRevision:
    @pytest.fixture
    def repo(self, project):
        repo = pygit2.init_repository(str(project / "repo"))
        blob_id = repo.create_blob(UNDEFINED_IN_FUNCTION.encode())
        index = pygit2.Index()
        index.add(pygit2.IndexEntry("lib/bad.php", blob_id, 33188))
        tree_id = index.write_tree(repo)
        author = pygit2.Signature("Test", "test@example.com", 1700000000, 0)
        commit_id = repo.create_commit("HEAD", author, author, "init", tree_id, [])
        return str(commit_id)

    def test_lint_revision(self, runner, repo):
        result = runner.invoke(cli, ["lint", "--git-rev", "HEAD", "--repo", "repo", "--format", "json"])
        assert result.exit_code == 1
        payload = json.loads(result.output)
        assert payload["revision"] == repo
        assert payload["files"][0]["file"] == "lib/bad.php"

    def test_invalid_revision(self, runner, repo):
        result = runner.invoke(cli, ["lint", "--git-rev", "nope", "--repo", "repo"])
        assert result.exit_code == 1
        assert "Invalid revision: nope" in result.output

    def test_paths_with_revision(self, runner, repo):
        result = runner.invoke(cli, ["lint", "src", "--git-rev", "HEAD", "--repo", "repo"])
        assert result.exit_code == 2


class TestSignaturesCommand:
    def test_text(self, runner, isolated_env):
        result = runner.invoke(
            cli,
            ["signatures", "preg_match", "sort", "strlen", "unknown_fn", "Foo::bar", "--signature", "?::bar(&$a)"],
        )
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines == [
            "preg_match: by-reference positions 2, initialized by the call",
            "sort: by-reference positions 0, must be initialized",
            "strlen: no by-reference parameters",
            "unknown_fn: unknown, arguments are checked as reads",
            "Foo::bar (as ?::bar): by-reference positions 0, initialized by the call",
        ]

    def test_json(self, runner, isolated_env):
        result = runner.invoke(cli, ["signatures", "preg_match", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.output) == [
            {
                "name": "preg_match",
                "known": True,
                "matched": "preg_match",
                "ref_positions": [2],
                "does_not_initialize": False,
            }
        ]

    def test_names_required(self, runner, isolated_env):
        assert runner.invoke(cli, ["signatures"]).exit_code == 2
