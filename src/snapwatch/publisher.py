"""Subscription channel delivering published items on a dispatch thread."""

import logging
import queue
import threading
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)

_STOP = object()


class Publisher:
    """
    Fan-out of published items to subscribers.

    Items are queued by `publish` and delivered, in order, by a dedicated
    dispatch thread, so a slow subscriber delays later deliveries but never
    the publisher. A subscriber that raises is logged and skipped.
    """

    def __init__(self, name: str = "publisher"):
        """
        Initialize the publisher.

        Args:
            name: Used for the dispatch thread name and in log messages
        """
        self.name = name
        self._subscribers: List[Callable[[Any], None]] = []
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._closed = False
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[Any], None]) -> Callable[[], bool]:
        """
        Register a subscriber.

        Args:
            callback: Called with each published item

        Returns:
            A function that unsubscribes the callback
        """
        with self._lock:
            self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Callable[[Any], None]) -> bool:
        """
        Remove a subscriber.

        Args:
            callback: A previously subscribed callback

        Returns:
            True if the callback was subscribed
        """
        with self._lock:
            try:
                self._subscribers.remove(callback)
                return True
            except ValueError:
                return False

    def start(self) -> None:
        """Start the dispatch thread if it is not running."""
        with self._lock:
            if self._closed:
                return
            if self._thread is None or not self._thread.is_alive():
                self._thread = threading.Thread(
                    target=self._dispatch_loop,
                    name=f"{self.name}-dispatch",
                )
                self._thread.daemon = True
                self._thread.start()

    def publish(self, item: Any) -> bool:
        """
        Queue an item for delivery.

        Args:
            item: The item to deliver to every subscriber

        Returns:
            False if the publisher is closed
        """
        if self._closed:
            return False
        self.start()
        self._queue.put(item)
        return True

    def close(self, timeout: float = 2.0) -> None:
        """
        Stop the dispatch thread; undelivered items are discarded.

        Args:
            timeout: Seconds to wait for the dispatch thread
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            thread = self._thread
            self._subscribers.clear()

        self._queue.put(_STOP)
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def _dispatch_loop(self) -> None:
        """Worker loop that delivers queued items to subscribers."""
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            if self._closed:
                continue

            with self._lock:
                subscribers = list(self._subscribers)

            for callback in subscribers:
                if self._closed:
                    break
                try:
                    callback(item)
                except Exception:
                    logger.exception(f"Subscriber of {self.name} raised")

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        """Return the number of subscribers."""
        with self._lock:
            return len(self._subscribers)
