"""Native change notifications using the watchdog library."""

import fnmatch
import logging
import os
import threading
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .exceptions import ProviderError, ProviderStoppedError, RootVanishedError
from .models import RawFSEvent

logger = logging.getLogger(__name__)


def _to_path(raw) -> Path:
    return Path(os.fsdecode(raw))


class FSEventHandler(FileSystemEventHandler):
    """Handler that converts watchdog events to RawFSEvent."""

    def __init__(
        self,
        callback: Callable[[RawFSEvent], None],
        root: Path,
        name_filter: str = "*",
        on_root_vanished: Optional[Callable[[ProviderError], None]] = None,
    ):
        super().__init__()
        self.callback = callback
        self.root = Path(root)
        self.name_filter = name_filter
        self.on_root_vanished = on_root_vanished

    def _matches(self, path: Path, is_directory: bool) -> bool:
        """Check a path against the file name filter."""
        if is_directory or self.name_filter == "*":
            return True
        return fnmatch.fnmatch(path.name, self.name_filter)

    def _emit(self, src_path: Path, dest_path: Optional[Path] = None, is_directory: bool = False, is_synthetic: bool = False):
        """Emit a RawFSEvent to the callback."""
        if not self._matches(src_path, is_directory):
            if dest_path is None or not self._matches(dest_path, is_directory):
                return

        self.callback(RawFSEvent(src_path=src_path, dest_path=dest_path, is_synthetic=is_synthetic))

    def _root_vanished(self, event_type: str) -> None:
        if self.on_root_vanished is not None:
            self.on_root_vanished(RootVanishedError(f"Watched root {event_type}: {self.root}"))

    def on_created(self, event: FileSystemEvent):
        # synthetic creations are the pre-existing contents of a folder moved in
        self._emit(
            _to_path(event.src_path),
            is_directory=event.is_directory,
            is_synthetic=event.is_synthetic,
        )

    def on_deleted(self, event: FileSystemEvent):
        src_path = _to_path(event.src_path)
        if src_path == self.root:
            self._root_vanished("deleted")
            return
        if event.is_synthetic:
            return
        self._emit(src_path, is_directory=event.is_directory)

    def on_modified(self, event: FileSystemEvent):
        # a directory's mtime moves whenever a child changes; the child reports it
        if event.is_directory or event.is_synthetic:
            return
        self._emit(_to_path(event.src_path))

    def on_moved(self, event: FileSystemEvent):
        src_path = _to_path(event.src_path)
        if src_path == self.root:
            self._root_vanished("moved")
            return
        # contents of a moved folder follow it in the snapshot store
        if event.is_synthetic:
            return
        self._emit(src_path, _to_path(event.dest_path), is_directory=event.is_directory)


class NativeWatcher:
    """
    One watchdog observer for one root that can be enabled and disabled.

    Observers cannot be restarted, so every enable creates a new one. A
    failure (root vanished, observer or emitter died) is reported to
    `on_error` at most once per enablement.
    """

    def __init__(
        self,
        root: Path,
        on_event: Callable[[RawFSEvent], None],
        on_error: Callable[[ProviderError], None],
        recursive: bool = True,
        name_filter: str = "*",
    ):
        """
        Initialize the native watcher.

        Args:
            root: Directory to observe
            on_event: Callback for raw filesystem events
            on_error: Callback for provider failures
            recursive: Whether to observe subdirectories
            name_filter: Glob that file names must match
        """
        self.root = Path(root)
        self.on_event = on_event
        self.on_error = on_error
        self.recursive = recursive
        self.name_filter = name_filter
        self._observer: Optional[Observer] = None
        self._failed = False
        self._lock = threading.Lock()

    def enable(self) -> bool:
        """
        Start raising events.

        Returns:
            True if an observer was started, False if already enabled

        Raises:
            OSError: If the root cannot be observed
        """
        with self._lock:
            if self._observer is not None:
                return False

            handler = FSEventHandler(
                self.on_event,
                self.root,
                self.name_filter,
                on_root_vanished=self._report_failure,
            )
            observer = Observer()
            observer.schedule(handler, str(self.root), recursive=self.recursive)
            observer.start()

            self._observer = observer
            self._failed = False
            logger.debug(f"Native watcher enabled for {self.root}")
            return True

    def disable(self, timeout: float = 5.0) -> bool:
        """
        Stop raising events.

        Args:
            timeout: Seconds to wait for the observer thread

        Returns:
            True if an observer was stopped, False if already disabled
        """
        with self._lock:
            observer = self._observer
            self._observer = None

        if observer is None:
            return False

        observer.stop()
        if observer is not threading.current_thread():
            observer.join(timeout=timeout)
        logger.debug(f"Native watcher disabled for {self.root}")
        return True

    def check_health(self) -> Optional[ProviderError]:
        """
        Detect an enabled observer that silently stopped.

        Returns:
            The reported failure, or None if healthy or disabled
        """
        with self._lock:
            observer = self._observer
            if observer is None or self._failed:
                return None
            alive = observer.is_alive() and all(e.is_alive() for e in list(observer.emitters))

        if alive:
            return None

        error = ProviderStoppedError(f"Native observer stopped for {self.root}")
        return error if self._report_failure(error) else None

    def _report_failure(self, error: ProviderError) -> bool:
        """Forward the first failure of the current enablement."""
        with self._lock:
            if self._observer is None or self._failed:
                return False
            self._failed = True

        logger.warning(f"Native watcher failure: {error}")
        self.on_error(error)
        return True

    @property
    def enabled(self) -> bool:
        """Check if the observer is running."""
        with self._lock:
            return self._observer is not None
