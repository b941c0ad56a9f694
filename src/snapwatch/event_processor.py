"""Coalescing of raw change notifications into timed batch windows."""

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class BatchAggregator:
    """
    Collects changed paths into batch windows.

    The first path to arrive while no window is open opens one and starts a
    one-shot timer of `latency_ms`. Every path arriving before the timer
    fires joins that window; duplicates are folded, but only within the
    window. When the timer fires the window's distinct paths are handed to
    `on_batch` in first-seen order and the window closes. The quiet period
    is measured from the first event of a window, not the most recent one.
    """

    def __init__(
        self,
        latency_ms: int = 50,
        on_batch: Optional[Callable[[List[Path]], None]] = None,
    ):
        """
        Initialize the aggregator.

        Args:
            latency_ms: Window length in milliseconds
            on_batch: Callback receiving each non-empty batch
        """
        self.latency_ms = latency_ms
        self.on_batch = on_batch
        self._paths: Dict[Path, None] = {}
        self._timer: Optional[threading.Timer] = None
        self._window = 0
        self._closed = False
        self._lock = threading.Lock()

    def add(self, path: Path) -> bool:
        """
        Add a changed path to the open window, opening one if needed.

        Args:
            path: Path reported by the native provider

        Returns:
            True if the path is new to the current window
        """
        path = Path(path)

        with self._lock:
            if self._closed:
                return False

            if self._timer is None:
                self._window += 1
                self._timer = threading.Timer(
                    self.latency_ms / 1000.0,
                    self._fire,
                    args=(self._window,),
                )
                self._timer.daemon = True
                self._timer.start()

            if path in self._paths:
                return False

            self._paths[path] = None
            return True

    def _fire(self, window: int) -> None:
        """Timer callback: emit the window that started the timer."""
        with self._lock:
            if self._closed or window != self._window or self._timer is None:
                return
            batch = self._take()

        self._emit(batch)

    def _take(self) -> List[Path]:
        """Internal: close the current window and return its paths."""
        batch = list(self._paths)
        self._paths.clear()
        self._timer = None
        return batch

    def _emit(self, batch: List[Path]) -> None:
        if not batch or self.on_batch is None:
            return
        try:
            self.on_batch(batch)
        except Exception:
            logger.exception(f"Error delivering batch of {len(batch)} path(s)")

    def flush(self) -> List[Path]:
        """
        Close the open window immediately and emit it.

        Returns:
            The emitted paths (empty if no window was open)
        """
        with self._lock:
            if self._timer is None:
                return []
            self._timer.cancel()
            batch = self._take()

        self._emit(batch)
        return batch

    def close(self) -> None:
        """Cancel any pending timer and discard the open window."""
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
            self._paths.clear()
            self._timer = None

    def pending_count(self) -> int:
        """Get number of distinct paths in the open window."""
        with self._lock:
            return len(self._paths)

    @property
    def is_open(self) -> bool:
        """Check if a window is currently open."""
        with self._lock:
            return self._timer is not None

    @property
    def closed(self) -> bool:
        return self._closed
