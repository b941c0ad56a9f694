"""
snapwatch

Turns raw, noisy filesystem notifications into clean batches of logical
changes, derived by diffing per-directory snapshots.

Features:
- File and folder changes: ADD, DELETE, MODIFY, RENAME
- Exact rename detection through stable file identity
- Per-window coalescing of raw notifications
- Ignored subfolders and file name filtering
- Automatic re-arm after native watcher failures
"""

from .models import (
    ChangeKind,
    FileSystemChange,
    RawFSEvent,
    ProviderFailure,
)

from .config import WatcherConfig, DEFAULT_LATENCY_MS, MIN_LATENCY_MS

from .exceptions import (
    WatcherError,
    RootNotFoundError,
    WatcherClosedError,
    ProviderError,
    RootVanishedError,
    ProviderStoppedError,
)

from .identity import FileId, FileIdProvider, StatFileIdProvider
from .ignore import IgnoreFilter
from .snapshot import FileSystemEntry, Snapshot
from .snapshot_store import SnapshotStore
from .event_processor import BatchAggregator
from .fs_watcher import FSEventHandler, NativeWatcher
from .publisher import Publisher
from .watcher import SnapshotWatcher, WatcherState


__all__ = [
    # Models
    "ChangeKind",
    "FileSystemChange",
    "RawFSEvent",
    "ProviderFailure",
    # Config
    "WatcherConfig",
    "DEFAULT_LATENCY_MS",
    "MIN_LATENCY_MS",
    # Exceptions
    "WatcherError",
    "RootNotFoundError",
    "WatcherClosedError",
    "ProviderError",
    "RootVanishedError",
    "ProviderStoppedError",
    # Components
    "FileId",
    "FileIdProvider",
    "StatFileIdProvider",
    "IgnoreFilter",
    "FileSystemEntry",
    "Snapshot",
    "SnapshotStore",
    "BatchAggregator",
    "FSEventHandler",
    "NativeWatcher",
    "Publisher",
    # Main watcher
    "SnapshotWatcher",
    "WatcherState",
]

__version__ = "0.1.0"
