#!/usr/bin/env python
"""Main entry point for the sticky command."""
import argparse
import logging
import os
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from sticky_situation import __version__
from sticky_situation.config import config
from sticky_situation.exceptions import ConfigurationError, ErrorCode, StickyError
from sticky_situation.models.schema import COLOR_NAMES, StickyRecord
from sticky_situation.observability import (
    configure_conflict_log,
    configure_logging,
    is_logging_configured,
    metrics,
)
from sticky_situation.services.stickies_app import StickiesApp
from sticky_situation.services.sync_service import SyncService
from sticky_situation.storage import StickyRepository

logger = logging.getLogger(__name__)

SEARCH_PREVIEW_WIDTH = 60
LIST_PREVIEW_WIDTH = 100


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="sticky", description="Sync macOS Stickies with a searchable database"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--stickies-dir",
        help="Directory Stickies.app keeps its notes in",
        type=str,
        default=None,
    )
    parser.add_argument(
        "--database-path",
        help="SQLite database file path",
        type=str,
        default=None,
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Reconcile Stickies.app with the database")
    sync.add_argument("--dry-run", action="store_true", help="Only show what would change")
    sync.add_argument("-v", "--verbose", action="store_true", help="List every action")
    sync.add_argument(
        "--continue-on-error",
        action="store_true",
        help="Keep going when a sticky fails instead of stopping",
    )
    sync.add_argument(
        "--reload",
        action="store_true",
        help="Restart Stickies.app if any note on disk was rewritten",
    )

    new = sub.add_parser("new", help="Create a new sticky")
    new.add_argument("text", help="Text of the new sticky")
    new.add_argument("--color", choices=COLOR_NAMES, default=COLOR_NAMES[0])
    new.add_argument(
        "--no-reload", action="store_true", help="Do not restart Stickies.app"
    )

    search = sub.add_parser("search", help="Full-text search")
    search.add_argument("query")
    search.add_argument("--color", help="Only stickies of this color")
    search.add_argument("--limit", type=int, default=None)

    listing = sub.add_parser("list", help="List stored stickies, newest first")
    listing.add_argument("--color", help="Only stickies of this color")

    show = sub.add_parser("show", help="Show one sticky")
    show.add_argument("id")

    sub.add_parser("hup", help="Restart (or launch) Stickies.app")

    cfg = sub.add_parser("config", help="Print the config file path")
    cfg.add_argument("--edit", action="store_true", help="Open it in $EDITOR")

    sub.add_parser("reindex", help="Rebuild the full-text index")

    return parser.parse_args(argv)


def update_config(args: argparse.Namespace) -> None:
    """Update the global config with command line arguments."""
    if args.stickies_dir:
        config.stickies_dir = Path(args.stickies_dir).expanduser()
    if args.database_path:
        config.database_path = Path(args.database_path).expanduser()
    if args.log_level:
        config.log_level = args.log_level


def _preview(text: str, width: int) -> str:
    flat = " ".join(text.split())
    if len(flat) <= width:
        return flat
    return flat[: width - 3].rstrip() + "..."


def _format_time(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp).isoformat(sep=" ")


def _open_repository() -> StickyRepository:
    config.ensure_dirs()
    return StickyRepository.create(config.database_path)


def _sync_service(
    repository: StickyRepository, app: Optional[StickiesApp] = None
) -> SyncService:
    conflict_logger = (
        configure_conflict_log(config.conflict_log_path) if config.log_conflicts else None
    )
    return SyncService(
        config.stickies_dir,
        repository,
        state_file=config.state_file,
        origin_host=config.origin_host,
        app=app,
        conflict_logger=conflict_logger,
    )


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


def cmd_sync(args: argparse.Namespace, repository: StickyRepository) -> int:
    service = _sync_service(repository, app=StickiesApp())
    report = service.run(
        dry_run=args.dry_run,
        fail_fast=config.fail_fast and not args.continue_on_error,
        reload_app=args.reload or config.reload_after_sync,
    )

    if args.verbose:
        for action in report.actions:
            print(f"{action.kind.value:<18} {action.sticky_id}")

    counts = ", ".join(f"{kind}: {n}" for kind, n in report.counts.items() if n)
    prefix = "Would sync" if report.dry_run else "Synced"
    print(f"{prefix} {len(report.actions)} stickies ({counts or 'nothing to do'})")
    for failure in report.failures:
        print(f"Failed {failure.action.sticky_id}: {failure.error}", file=sys.stderr)
    if report.app_restarted:
        print("Restarted Stickies")
    if args.verbose:
        _print_timings()
    return 1 if report.failures else 0


def _print_timings() -> None:
    """Per-operation timings collected by ``timed_operation`` in this run."""
    collected = metrics.get_metrics()
    if not collected:
        return
    print("Timings:")
    for operation, m in sorted(collected.items()):
        line = (
            f"  {operation:<18} {m['count']:>4} call(s)  "
            f"avg {m['avg_duration_ms']:.2f} ms  max {m['max_duration_ms']:.2f} ms"
        )
        if m["error_count"]:
            line += f"  {m['error_count']} failed (last: {m['last_error']})"
        print(line)


def cmd_new(args: argparse.Namespace, repository: StickyRepository) -> int:
    service = _sync_service(repository, app=None if args.no_reload else StickiesApp())
    record = service.create_sticky(args.text, color_index=COLOR_NAMES.index(args.color))
    print(record.id)
    return 0


def _matches_color(record: StickyRecord, color: Optional[str]) -> bool:
    return not color or record.appearance_tag == color.lower()


def cmd_search(args: argparse.Namespace, repository: StickyRepository) -> int:
    # Color is filtered before the limit so --limit counts matching stickies
    results = [
        r for r in repository.search(args.query)
        if _matches_color(r, args.color)
    ]
    if args.limit is not None:
        results = results[: max(args.limit, 0)]
    if not results:
        print("No matches")
        return 0
    for record in results:
        print(
            f"{record.id}  [{record.appearance_tag}]  "
            f"{_preview(record.plain_text, SEARCH_PREVIEW_WIDTH)}"
        )
    return 0


def cmd_list(args: argparse.Namespace, repository: StickyRepository) -> int:
    records = repository.get_all(color=args.color)
    if not records:
        print("No stickies stored")
        return 0
    for record in records:
        print(
            f"{record.id}  [{record.appearance_tag}]  {_format_time(record.modified_at)}  "
            f"{_preview(record.plain_text, LIST_PREVIEW_WIDTH)}"
        )
    return 0


def cmd_show(args: argparse.Namespace, repository: StickyRepository) -> int:
    record = repository.get(args.id) or repository.get(args.id.lower())
    if record is None:
        print(f"No sticky with ID {args.id}", file=sys.stderr)
        return 1
    print(f"ID:       {record.id}")
    print(f"Color:    {record.appearance_tag}")
    print(f"Created:  {_format_time(record.created_at)}")
    print(f"Modified: {_format_time(record.modified_at)}")
    print(f"Origin:   {record.origin_host}")
    if record.attachments:
        names = ", ".join(a.filename for a in record.attachments)
        print(f"Attachments: {names}")
    print()
    print(record.plain_text)
    return 0


def cmd_reindex(args: argparse.Namespace, repository: StickyRepository) -> int:
    count = repository.rebuild_fts()
    print(f"Reindexed {count} stickies")
    return 0


def cmd_hup(args: argparse.Namespace) -> int:
    restarted = StickiesApp().restart()
    print("Restarted Stickies" if restarted else "Launched Stickies")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    path = config.ensure_config_exists()
    if not args.edit:
        print(path)
        return 0

    editor = os.environ.get("EDITOR", "vi")
    try:
        subprocess.run([editor, str(path)], check=True)
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"Editor not found: {editor}",
            config_key="EDITOR",
            code=ErrorCode.CONFIG_INVALID,
        ) from e
    except subprocess.CalledProcessError as e:
        raise ConfigurationError(
            f"Editor exited with status {e.returncode}",
            config_key="EDITOR",
            code=ErrorCode.CONFIG_INVALID,
        ) from e
    return 0


REPOSITORY_COMMANDS = {
    "sync": cmd_sync,
    "new": cmd_new,
    "search": cmd_search,
    "list": cmd_list,
    "show": cmd_show,
    "reindex": cmd_reindex,
}

STANDALONE_COMMANDS = {
    "hup": cmd_hup,
    "config": cmd_config,
}


def _setup_logging() -> None:
    if is_logging_configured():
        return
    # Configure logging (console + persistent file logging with rotation)
    log_level = getattr(logging, config.log_level, logging.INFO)
    try:
        configure_logging(config.log_dir, level=log_level, console=True)
    except OSError as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=logging.WARNING)
        logger.warning(f"Failed to configure file logging: {e}")


def main(argv: Optional[List[str]] = None) -> int:
    """Run the sticky command and return its exit status."""
    args = parse_args(argv)
    try:
        update_config(args)
    except ValueError as e:
        print(f"Error: invalid option: {e}", file=sys.stderr)
        return 1
    _setup_logging()
    logger.debug(f"sticky {__version__}: {args.command}")

    try:
        if args.command in STANDALONE_COMMANDS:
            return STANDALONE_COMMANDS[args.command](args)

        repository = _open_repository()
        try:
            return REPOSITORY_COMMANDS[args.command](args, repository)
        finally:
            repository.close()
    except StickyError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
