"""Main watcher orchestrator."""

import logging
import os
import queue
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set

from .config import WatcherConfig
from .event_processor import BatchAggregator
from .exceptions import ProviderError, RootNotFoundError, WatcherClosedError
from .fs_watcher import NativeWatcher
from .identity import FileIdProvider, StatFileIdProvider
from .ignore import IgnoreFilter
from .models import ChangeKind, FileSystemChange, ProviderFailure, RawFSEvent
from .publisher import Publisher
from .snapshot import Snapshot
from .snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

_BATCH = "batch"
_FAILURE = "failure"
_STOP = object()


class WatcherState(Enum):
    """Lifecycle states of a watcher."""
    STOPPED = "stopped"
    RUNNING = "running"
    ERROR_PENDING = "error_pending"


class SnapshotWatcher:
    """
    Turns raw native notifications into batches of logical changes.

    Raw paths are coalesced into batch windows. Each batch is handed to a
    worker thread, which re-snapshots the parent directory of every changed
    path and diffs it against the last snapshot of that directory. The
    resulting changes are published to subscribers as one non-empty list
    per batch.

    Directory scans never run under the watcher lock; the lock only covers
    state checks and the diff-and-replace step for one directory.
    """

    def __init__(
        self,
        root: Optional[Path] = None,
        config: Optional[WatcherConfig] = None,
        identity: Optional[FileIdProvider] = None,
    ):
        """
        Initialize the watcher.

        Args:
            root: Directory to watch (overrides config.root)
            config: Watcher configuration
            identity: Stable file id provider (defaults to device/inode)

        Raises:
            RootNotFoundError: If the root is not an existing directory
        """
        self.config = config or WatcherConfig()
        if root is not None:
            self.config.root = Path(root)

        self._root = self.config.root.resolve()
        if not self._root.is_dir():
            raise RootNotFoundError(f"Root folder does not exist: {self._root}")

        self._identity = identity or StatFileIdProvider()
        self._ignore = IgnoreFilter(self._root, self.config.ignored_folders)
        self._store = SnapshotStore()
        self._changes = Publisher("changes")
        self._errors = Publisher("errors")
        self._queue: "queue.Queue" = queue.Queue(maxsize=self.config.queue_size)

        # paths that already existed inside a folder moved in from outside
        self._preexisting: Set[Path] = set()
        self._preexisting_lock = threading.Lock()

        self._aggregator = BatchAggregator(self.config.latency_ms, self._enqueue_batch)
        self._native = NativeWatcher(
            self._root,
            self._on_raw_event,
            self._on_provider_error,
            recursive=self.config.recurse,
            name_filter=self.config.filter,
        )

        self._state = WatcherState.STOPPED
        self._closed = False
        self._lock = threading.RLock()
        self._stop_event = threading.Event()

        self._worker = threading.Thread(target=self._worker_loop, name="SnapshotWatcher")
        self._worker.daemon = True
        self._worker.start()
        self._changes.start()
        self._errors.start()

        if not self.config.start_running:
            self._store.reset(self._scan_tree(self._root))
            return

        try:
            self.start()
        except Exception:
            self.close()
            raise

    # Lifecycle

    def start(self) -> None:
        """
        Rebuild the snapshot store and start raising events.

        Changes made while the watcher was stopped are never reported.

        Raises:
            WatcherClosedError: If the watcher has been closed
            RootNotFoundError: If the root no longer exists
        """
        self._check_startable()
        snapshots = self._scan_tree(self._root)

        with self._lock:
            self._check_startable()
            self._store.reset(snapshots)
            self._native.enable()
            self._state = WatcherState.RUNNING

        logger.info(f"Watching {self._root} ({len(snapshots)} folder(s))")

    def _check_startable(self) -> None:
        if self._closed:
            raise WatcherClosedError("Watcher is closed")
        if not self._root.is_dir():
            raise RootNotFoundError(f"Root folder does not exist: {self._root}")

    def stop(self) -> None:
        """Stop raising events; the snapshot store is retained."""
        with self._lock:
            if self._closed:
                return
            self._native.disable()
            self._state = WatcherState.STOPPED

        logger.info(f"Stopped watching {self._root}")

    def close(self) -> None:
        """Stop the watcher and release all resources; no batch is delivered afterwards."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._state = WatcherState.STOPPED

        self._native.disable()
        self._aggregator.close()
        self._stop_event.set()
        try:
            self._queue.put_nowait(_STOP)
        except queue.Full:
            # the worker also exits on the stop event
            pass

        if self._worker is not threading.current_thread():
            self._worker.join(timeout=5.0)

        self._changes.close()
        self._errors.close()
        logger.debug(f"Closed watcher for {self._root}")

    # Subscriptions

    def subscribe(self, callback: Callable[[List[FileSystemChange]], None]) -> Callable[[], bool]:
        """
        Receive each non-empty, duplicate-free list of changes.

        Returns:
            A function that unsubscribes the callback
        """
        return self._changes.subscribe(callback)

    def unsubscribe(self, callback: Callable[[List[FileSystemChange]], None]) -> bool:
        return self._changes.unsubscribe(callback)

    def subscribe_errors(self, callback: Callable[[ProviderFailure], None]) -> Callable[[], bool]:
        """
        Receive native provider failures.

        Returns:
            A function that unsubscribes the callback
        """
        return self._errors.subscribe(callback)

    def unsubscribe_errors(self, callback: Callable[[ProviderFailure], None]) -> bool:
        return self._errors.unsubscribe(callback)

    # Native provider callbacks

    def _on_raw_event(self, raw_event: RawFSEvent) -> None:
        """Callback for raw events; runs on the native observer thread."""
        for path in raw_event.paths():
            if not self._is_inside_root(path):
                continue
            if self._ignore.is_ignored(path):
                continue
            with self._preexisting_lock:
                if raw_event.is_synthetic:
                    self._preexisting.add(path)
                else:
                    self._preexisting.discard(path)
            self._aggregator.add(path)

    def _enqueue_batch(self, paths: List[Path]) -> None:
        """Callback for closed batch windows; runs on the timer thread."""
        self._queue.put((_BATCH, paths))

    def _on_provider_error(self, error: ProviderError) -> None:
        """Callback for provider failures; runs on the observer or the worker thread."""
        if threading.current_thread() is self._worker:
            # raised by the worker's own health check
            self._handle_provider_failure(error)
        else:
            self._queue.put((_FAILURE, error))

    def _worker_loop(self) -> None:
        """Worker loop that processes batches and provider failures in order."""
        interval = self.config.health_check_interval_ms / 1000.0
        next_check = time.monotonic() + interval
        logger.debug(f"Worker started for {self._root}")

        while not self._stop_event.is_set():
            try:
                item = self._queue.get(timeout=max(0.0, next_check - time.monotonic()))
            except queue.Empty:
                item = None

            if item is _STOP:
                break

            if item is not None:
                try:
                    kind, payload = item
                    if kind == _BATCH:
                        self.process_batch(payload)
                    elif kind == _FAILURE:
                        self._handle_provider_failure(payload)
                except Exception:
                    logger.exception("Watcher worker error")

            if time.monotonic() >= next_check:
                next_check = time.monotonic() + interval
                try:
                    if self._state == WatcherState.RUNNING:
                        self._native.check_health()
                except Exception:
                    logger.exception("Watcher health check error")

    def _handle_provider_failure(self, error: ProviderError) -> None:
        """Re-arm the native watcher unless the root is gone, then report."""
        with self._lock:
            if self._closed:
                return

            was_running = self._state == WatcherState.RUNNING
            self._state = WatcherState.ERROR_PENDING
            self._native.disable()

            recovered = False
            if was_running and self._root.is_dir():
                try:
                    self._native.enable()
                    recovered = True
                except OSError as e:
                    logger.error(f"Failed to re-enable native watcher: {e}")

            self._state = WatcherState.RUNNING if recovered else WatcherState.STOPPED

        if recovered:
            logger.warning(f"Native watcher failed and was re-enabled: {error}")
        else:
            logger.warning(f"Native watcher failed; stopped until start() is called: {error}")

        self._errors.publish(ProviderFailure(self._root, error, recovered))

    # Batch processing

    def process_batch(self, paths: Iterable[Path]) -> List[FileSystemChange]:
        """
        Turn a batch of changed paths into logical changes and publish them.

        Args:
            paths: Distinct changed paths of one batch window

        Returns:
            The published changes (empty if nothing changed)
        """
        if self._closed:
            return []

        paths = [Path(p) for p in paths]
        try:
            changes = self._collect_changes(paths)
        finally:
            with self._preexisting_lock:
                self._preexisting.difference_update(paths)

        if changes and not self._closed:
            logger.debug(f"Publishing {len(changes)} change(s)")
            self._changes.publish(changes)
        return changes

    def _collect_changes(self, paths: List[Path]) -> List[FileSystemChange]:
        """Internal: diff every affected parent directory once."""
        changes: List[FileSystemChange] = []
        diffed = set()

        # parents before children, so a new folder is tracked before its contents are diffed
        for path in sorted(paths, key=lambda p: len(p.parts)):
            if not self._is_inside_root(path):
                continue

            parent = path.parent
            if not parent.is_dir():
                logger.debug(f"Parent folder vanished: {parent}")
                with self._lock:
                    if self._closed:
                        return []
                    self._store.remove_tree(parent)
                changes.append(FileSystemChange.delete(path))
                continue

            if self._ignore.is_ignored(path):
                continue
            if parent in diffed:
                continue
            diffed.add(parent)

            current = self._snapshot(parent)
            with self._lock:
                if self._closed:
                    return []
                previous = self._store.get_or_create(parent)
                diff = previous.diff(current, self.config.latency)
                self._store.replace(parent, current)
                unseeded = self._track_directories(diff) if diff and self.config.recurse else []

            for folder in unseeded:
                self._seed(folder)
            changes.extend(self._drop_preexisting(diff))

        return list(dict.fromkeys(changes))

    def _track_directories(self, diff: List[FileSystemChange]) -> List[Path]:
        """
        Keep store entries in step with added, deleted and renamed folders.

        A new folder starts out empty, so each of its children is reported
        when its own event is diffed. A renamed folder keeps its contents.

        Returns:
            Renamed folders whose contents were never tracked
        """
        unseeded = []
        for change in diff:
            if change.kind == ChangeKind.DELETE:
                self._store.remove_tree(change.path)
            elif change.kind == ChangeKind.ADD:
                if _is_real_dir(change.path):
                    self._store.get_or_create(change.path)
            elif change.kind == ChangeKind.RENAME:
                moved = self._store.move_tree(change.old_path, change.path)
                if self._ignore.is_ignored_directory(change.path):
                    self._store.remove_tree(change.path)
                elif not moved and _is_real_dir(change.path):
                    unseeded.append(change.path)
        return unseeded

    def _seed(self, folder: Path) -> None:
        """Snapshot a folder tree renamed out of an ignored name."""
        snapshots = self._scan_tree(folder)
        with self._lock:
            if not self._closed:
                self._store.update(snapshots)

    def _drop_preexisting(self, diff: List[FileSystemChange]) -> List[FileSystemChange]:
        """Internal: an Add for content that arrived with a moved-in folder is not a change."""
        with self._preexisting_lock:
            if not self._preexisting:
                return diff
            return [
                c for c in diff
                if not (c.kind == ChangeKind.ADD and c.path in self._preexisting)
            ]

    def _snapshot(self, directory: Path) -> Snapshot:
        return Snapshot.build(directory, self._identity, self.config.filter, self._ignore)

    def _scan_tree(self, directory: Path) -> Dict[Path, Snapshot]:
        """
        Snapshot a folder and, when recursing, every non-ignored folder below it.

        Args:
            directory: Top of the tree

        Returns:
            Mapping of folder path to snapshot
        """
        snapshots: Dict[Path, Snapshot] = {}
        if self._ignore.is_ignored_directory(directory):
            return snapshots

        snapshots[directory] = self._snapshot(directory)
        if not self.config.recurse:
            return snapshots

        for dirpath, dirnames, _ in os.walk(directory):
            dirnames[:] = [
                name for name in dirnames
                if not self._ignore.is_ignored_directory(Path(dirpath) / name)
            ]
            for name in dirnames:
                subfolder = Path(dirpath) / name
                snapshots[subfolder] = self._snapshot(subfolder)

        return snapshots

    def _is_inside_root(self, path: Path) -> bool:
        return self._root in Path(path).parents

    # Properties

    @property
    def root(self) -> Path:
        return self._root

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if the native provider is raising events."""
        return self._state == WatcherState.RUNNING

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def snapshots(self) -> SnapshotStore:
        """The last known snapshot of every watched folder."""
        return self._store

    def pending_count(self) -> int:
        """Get number of distinct paths in the open batch window."""
        return self._aggregator.pending_count()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return f"<SnapshotWatcher root={self._root} state={self._state.value}>"


def _is_real_dir(path: Path) -> bool:
    return path.is_dir() and not path.is_symlink()
