"""Tests for argument parsing, command setup and output helpers."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from tasksync.__main__ import main, parse_args
from tasksync.cli.common import SetupError, build_context, make_filter
from tasksync.cli.output import numbers, sync_summary
from tasksync.config import Settings
from tasksync.models import StatusReport, SyncItemError, SyncResult


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("GITHUB_TOKEN", "GITHUB_REPO", "SYNC_IGNORE_DIRS"):
        monkeypatch.delenv(key, raising=False)


class TestParseArgs:
    """Tests for parse_args."""

    def test_sync_flags(self):
        """Sync accepts create, cleanup and source options."""
        args = parse_args(
            ["-vv", "sync", "--create", "--clean-orphans", "--source", "tasks", "--issue", "7"]
        )
        assert args.command == "sync"
        assert args.verbose == 2
        assert args.create
        assert args.clean_orphans
        assert not args.strip_orphans
        assert args.sources == ["tasks"]
        assert args.issue == 7

    def test_file_and_issue_exclusive(self):
        """Only one target may be given."""
        with pytest.raises(SystemExit):
            parse_args(["push", "--file", "a.md", "--issue", "3"])

    def test_unknown_source_rejected(self):
        """Sources are limited to the known backends."""
        with pytest.raises(SystemExit):
            parse_args(["pull", "--source", "jira"])

    def test_command_required(self):
        """A subcommand must be given."""
        with pytest.raises(SystemExit):
            parse_args([])

    def test_ignore_dirs_repeatable(self):
        """--ignore-dir may be given several times."""
        args = parse_args(["status", "--ignore-dir", "completed", "--ignore-dir", "active"])
        assert args.ignore_dirs == ["completed", "active"]


class TestMakeFilter:
    """Tests for make_filter."""

    def test_no_target(self):
        """Without file or issue there is no filter."""
        assert make_filter(None, None) is None

    def test_issue_target(self):
        """An issue number becomes a filter."""
        sync_filter = make_filter(None, 5)
        assert sync_filter is not None
        assert sync_filter.issue_number == 5


class TestBuildContext:
    """Tests for command setup errors."""

    def test_missing_repo(self, tmp_path: Path):
        """No repository configured or detectable is a setup error."""
        settings = Settings.load(tmp_path, github_token="t")
        with (
            patch("tasksync.config.settings.detect_github_repo", return_value=None),
            pytest.raises(SetupError, match="No GitHub repository"),
        ):
            build_context(settings)

    def test_invalid_repo(self, tmp_path: Path):
        """A malformed repository is a setup error with a hint."""
        settings = Settings.load(tmp_path, github_token="t", github_repo="widgets")
        with pytest.raises(SetupError) as exc_info:
            build_context(settings)
        assert exc_info.value.hint is not None

    def test_inaccessible_repo(self, tmp_path: Path):
        """A repository the token cannot read is a setup error."""
        settings = Settings.load(tmp_path, github_token="t", github_repo="acme/widgets")
        with (
            patch("tasksync.cli.common.GitHubClient.verify_access", return_value=False),
            pytest.raises(SetupError, match="Cannot access"),
        ):
            build_context(settings)

    def test_builds_engine(self, tmp_path: Path):
        """A valid configuration yields a ready engine."""
        settings = Settings.load(tmp_path, github_token="t", github_repo="acme/widgets")
        with patch("tasksync.cli.common.GitHubClient.verify_access", return_value=True):
            ctx = build_context(settings, sources=["tasks"])
        assert ctx.client.repo == "acme/widgets"
        ctx.close()

    def test_main_exits_on_setup_error(self, tmp_path: Path, capsys):
        """Commands exit with 1 before touching any files."""
        with (
            patch("tasksync.config.settings.detect_github_repo", return_value=None),
            pytest.raises(SystemExit) as exc_info,
        ):
            main(["--project-root", str(tmp_path), "status"])
        assert exc_info.value.code == 1
        assert "No GitHub repository configured" in capsys.readouterr().out


class TestOutput:
    """Tests for summary output."""

    def test_numbers(self):
        """Issue numbers are listed with hashes."""
        assert numbers([3, 7]) == "#3, #7"

    def test_up_to_date(self, capsys):
        """A run that did nothing says so."""
        sync_summary(SyncResult(skipped=[1, 2]))
        out = capsys.readouterr().out
        assert "Unchanged 2" in out
        assert "Everything is up to date" in out

    def test_errors_listed(self, capsys):
        """Per-item errors are printed with their issue number."""
        sync_summary(SyncResult(pushed=[4], errors=[SyncItemError(5, "boom")]))
        out = capsys.readouterr().out
        assert "Pushed 1: #4" in out
        assert "#5: boom" in out

    def test_status_report(self, capsys):
        """print_status lists counts and new tasks."""
        from tasksync.cli.status import print_status

        print_status(StatusReport(to_push=[7], new_local=["add-oauth.md"]))
        out = capsys.readouterr().out
        assert "To push: 1 (#7)" in out
        assert "add-oauth.md" in out


class TestRunCommands:
    """Tests for command functions with a stubbed engine."""

    def test_run_push_exit_code(self, tmp_path: Path):
        """Item errors make the command exit non-zero."""
        from tasksync.cli.push import run_push

        ctx = MagicMock()
        ctx.engine.push.return_value = SyncResult(errors=[SyncItemError(3, "boom")])
        with patch("tasksync.cli.push.build_context", return_value=ctx):
            assert run_push(Settings.load(tmp_path)) == 1
        ctx.close.assert_called_once()

    def test_run_pull_success(self, tmp_path: Path):
        """A clean run exits zero."""
        from tasksync.cli.pull import run_pull

        ctx = MagicMock()
        ctx.engine.pull.return_value = SyncResult(pulled=[3])
        with patch("tasksync.cli.pull.build_context", return_value=ctx):
            assert run_pull(Settings.load(tmp_path)) == 0
