"""
CLI for watching a folder and printing its logical changes.

Usage:
    snapwatch watch /path/to/folder --ignore .git node_modules
    snapwatch watch /path/to/folder --filter "*.md" --latency 100 --json
    snapwatch snapshot /path/to/folder
"""

import argparse
import json
import logging
import signal
import sys
import time
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import WatcherConfig
from .exceptions import WatcherError
from .models import FileSystemChange, ProviderFailure
from .snapshot import Snapshot
from .watcher import SnapshotWatcher

logger = logging.getLogger("snapwatch.cli")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True


def build_config(args) -> WatcherConfig:
    """Merge SNAPWATCH_* environment defaults with command-line arguments."""
    return WatcherConfig.from_env(
        root=Path(args.root) if args.root else None,
        ignored_folders=args.ignore,
        filter=args.filter,
        recurse=False if args.no_recurse else None,
        latency_ms=args.latency,
    )


def format_change(change: FileSystemChange, as_json: bool = False) -> str:
    if as_json:
        return json.dumps(change.to_dict())
    return str(change)


def cmd_watch(args) -> int:
    """Watch a folder until interrupted."""
    config = build_config(args)

    def on_changes(changes: List[FileSystemChange]) -> None:
        for change in changes:
            print(format_change(change, args.json), flush=True)

    def on_error(failure: ProviderFailure) -> None:
        if args.json:
            print(json.dumps({"error": failure.to_dict()}), flush=True)
        if not failure.recovered:
            logger.error(f"Watcher stopped: {failure.error}")

    try:
        watcher = SnapshotWatcher(config=config)
    except WatcherError as e:
        logger.error(str(e))
        return 1

    shutdown = GracefulShutdown()

    with watcher:
        watcher.subscribe(on_changes)
        watcher.subscribe_errors(on_error)

        logger.info(f"Latency: {config.latency_ms}ms, filter: {config.filter}, recurse: {config.recurse}")
        if config.ignored_folders:
            logger.info(f"Ignoring folders: {', '.join(config.ignored_folders)}")
        logger.info("Press Ctrl+C to stop")

        while not shutdown.should_exit:
            time.sleep(0.2)

    logger.info("Watcher stopped")
    return 0


def cmd_snapshot(args) -> int:
    """Print the snapshot of one folder."""
    directory = Path(args.directory).resolve()
    if not directory.is_dir():
        logger.error(f"Not a directory: {directory}")
        return 1

    snapshot = Snapshot.build(directory, name_filter=args.filter)
    for entry in snapshot:
        if args.json:
            print(json.dumps({
                "id": list(entry.id) if isinstance(entry.id, tuple) else entry.id,
                "path": str(entry.path),
                "last_modified": entry.last_modified,
            }))
        else:
            print(f"{entry.id}\t{entry.last_modified:.6f}\t{entry.path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snapwatch",
        description="Report logical file system changes for a folder",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Watch command
    watch_parser = subparsers.add_parser("watch", help="Watch a folder and print changes")
    watch_parser.add_argument("root", nargs="?", default=None, help="Folder to watch (or set SNAPWATCH_ROOT)")
    watch_parser.add_argument("--ignore", nargs="+", default=None, metavar="NAME", help="Folder names to ignore")
    watch_parser.add_argument("--filter", default=None, help="File name glob (default: *)")
    watch_parser.add_argument("--no-recurse", action="store_true", help="Only watch the top folder")
    watch_parser.add_argument("--latency", type=int, default=None, help="Batch window in ms (default: 50)")
    watch_parser.add_argument("--json", action="store_true", help="Print changes as JSON lines")
    watch_parser.set_defaults(func=cmd_watch)

    # Snapshot command
    snapshot_parser = subparsers.add_parser("snapshot", help="Print the snapshot of a folder")
    snapshot_parser.add_argument("directory", help="Folder to snapshot")
    snapshot_parser.add_argument("--filter", default="*", help="File name glob (default: *)")
    snapshot_parser.add_argument("--json", action="store_true", help="Print entries as JSON lines")
    snapshot_parser.set_defaults(func=cmd_snapshot)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("watchdog").setLevel(logging.WARNING)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
