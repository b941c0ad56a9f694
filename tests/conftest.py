"""Shared fixtures for snapwatch tests."""

import threading
import time

import pytest


class Collector:
    """Thread-safe sink for subscriber callbacks."""

    def __init__(self):
        self.items = []
        self._lock = threading.Lock()

    def __call__(self, item):
        with self._lock:
            self.items.append(item)

    def snapshot(self):
        with self._lock:
            return list(self.items)

    def flat(self):
        """Flatten collected change lists into one list of changes."""
        with self._lock:
            return [change for batch in self.items for change in batch]


def _wait_for(predicate, timeout=5.0, interval=0.02):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def collector():
    return Collector()


@pytest.fixture
def wait_for():
    return _wait_for
