"""CLI entry point for tasksync."""

import argparse
from pathlib import Path

from . import __version__
from .cli.common import make_filter
from .config import Settings
from .logging import setup_logging

SOURCE_CHOICES = ["tasks", "openspec", "all"]


def _add_common_options(parser: argparse.ArgumentParser, with_filter: bool = True) -> None:
    parser.add_argument(
        "--source",
        dest="sources",
        action="append",
        choices=SOURCE_CHOICES,
        default=None,
        help="Source to operate on (repeatable, default: all)",
    )
    parser.add_argument(
        "--ignore-dir",
        dest="ignore_dirs",
        action="append",
        default=[],
        metavar="STATUS",
        help="Skip a status directory (backlog, active, completed); repeatable",
    )
    parser.add_argument(
        "--keep-title-prefixes",
        action="store_true",
        default=None,
        help="Keep leading [#NNN] markers in issue titles",
    )
    if with_filter:
        target = parser.add_mutually_exclusive_group()
        target.add_argument(
            "--file",
            type=Path,
            default=None,
            help="Only this task file",
        )
        target.add_argument(
            "--issue",
            type=int,
            default=None,
            metavar="NUMBER",
            help="Only this issue number (pulls it if no local task exists)",
        )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="tasksync",
        description="Bidirectional sync between markdown task files and GitHub issues",
    )
    parser.add_argument(
        "--project-root",
        type=Path,
        default=None,
        help="Project root containing docs/tasks and openspec/ (default: current directory)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (-v for INFO, -vv for DEBUG)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Path to write logs to file",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Bidirectional sync with conflict prompts")
    _add_common_options(sync)
    sync.add_argument(
        "--create",
        action="store_true",
        help="Create issues for new local tasks first",
    )
    sync.add_argument(
        "--clean-orphans",
        "--clean",
        dest="clean_orphans",
        action="store_true",
        help="Offer to delete local tasks whose issue no longer exists",
    )
    sync.add_argument(
        "--strip-orphans",
        action="store_true",
        help="Remove issue numbers from local tasks whose issue no longer exists",
    )

    push = subparsers.add_parser("push", help="Update GitHub from local tasks")
    _add_common_options(push)

    pull = subparsers.add_parser("pull", help="Update local tasks from GitHub")
    _add_common_options(pull)

    status = subparsers.add_parser("status", help="Show what a sync would do")
    _add_common_options(status)

    create = subparsers.add_parser("create", help="Create issues for new local tasks")
    _add_common_options(create, with_filter=False)

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    # Build settings from CLI args
    settings_kwargs: dict = {}
    if args.verbose:
        settings_kwargs["verbose"] = args.verbose
    if args.log_file:
        settings_kwargs["log_file"] = args.log_file
    if args.keep_title_prefixes:
        settings_kwargs["keep_title_prefixes"] = True

    settings = Settings.load(args.project_root or Path(), **settings_kwargs)

    # Setup logging based on verbosity
    setup_logging(settings.verbose, settings.log_file)

    sources = tuple(args.sources or ["all"])
    ignore_dirs = args.ignore_dirs

    if args.command == "create":
        from .cli.create import run_create

        raise SystemExit(run_create(settings, sources, ignore_dirs))

    sync_filter = make_filter(args.file, args.issue)

    if args.command == "sync":
        from .cli.sync import run_sync

        exit_code = run_sync(
            settings,
            sources,
            sync_filter,
            create=args.create,
            clean_orphans=args.clean_orphans,
            strip_orphans=args.strip_orphans,
            extra_ignore_dirs=ignore_dirs,
        )
    elif args.command == "push":
        from .cli.push import run_push

        exit_code = run_push(settings, sources, sync_filter, ignore_dirs)
    elif args.command == "pull":
        from .cli.pull import run_pull

        exit_code = run_pull(settings, sources, sync_filter, ignore_dirs)
    else:
        from .cli.status import run_status

        exit_code = run_status(settings, sources, sync_filter, ignore_dirs)

    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
