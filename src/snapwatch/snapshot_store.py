"""Thread-safe store of the last known snapshot per directory."""

import threading
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from .snapshot import Snapshot


class SnapshotStore:
    """
    Thread-safe mapping from absolute directory path to its current Snapshot.

    Every operation holds the same lock, so get-or-create, replace and
    remove are linearizable with respect to each other. Factories passed to
    get_or_create run under the lock and must not scan the filesystem.
    """

    def __init__(self):
        """Initialize an empty store."""
        self._snapshots: Dict[Path, Snapshot] = {}
        self._lock = threading.RLock()

    def get(self, directory: Path) -> Optional[Snapshot]:
        """
        Get the current snapshot of a directory.

        Args:
            directory: Directory path

        Returns:
            The stored snapshot, or None
        """
        with self._lock:
            return self._snapshots.get(Path(directory))

    def get_or_create(
        self,
        directory: Path,
        factory: Callable[[Path], Snapshot] = Snapshot.empty,
    ) -> Snapshot:
        """
        Get the current snapshot of a directory, creating it if absent.

        Concurrent first accesses create exactly one snapshot.

        Args:
            directory: Directory path
            factory: Builds the snapshot for a missing key

        Returns:
            The stored snapshot
        """
        directory = Path(directory)
        with self._lock:
            snapshot = self._snapshots.get(directory)
            if snapshot is None:
                snapshot = factory(directory)
                self._snapshots[directory] = snapshot
            return snapshot

    def replace(self, directory: Path, snapshot: Snapshot) -> Optional[Snapshot]:
        """
        Make a snapshot the current one for a directory.

        Args:
            directory: Directory path
            snapshot: The new snapshot

        Returns:
            The snapshot it superseded, or None
        """
        directory = Path(directory)
        with self._lock:
            previous = self._snapshots.get(directory)
            self._snapshots[directory] = snapshot
            return previous

    def remove(self, directory: Path) -> bool:
        """
        Forget a directory.

        Args:
            directory: Directory path

        Returns:
            True if an entry was removed
        """
        with self._lock:
            return self._snapshots.pop(Path(directory), None) is not None

    def remove_tree(self, directory: Path) -> int:
        """
        Forget a directory and every directory below it.

        Args:
            directory: Top of the subtree

        Returns:
            Number of entries removed
        """
        directory = Path(directory)
        with self._lock:
            doomed = [
                key for key in self._snapshots
                if key == directory or directory in key.parents
            ]
            for key in doomed:
                del self._snapshots[key]
            return len(doomed)

    def move_tree(self, old: Path, new: Path) -> int:
        """
        Re-key a directory and every directory below it after a rename.

        Entries already stored under `new` are replaced.

        Args:
            old: Previous path of the top of the subtree
            new: Current path of the top of the subtree

        Returns:
            Number of entries moved
        """
        old = Path(old)
        new = Path(new)
        with self._lock:
            moving = [
                key for key in self._snapshots
                if key == old or old in key.parents
            ]
            moved = {
                new / key.relative_to(old): self._snapshots.pop(key).relocate(old, new)
                for key in moving
            }
            self._snapshots.update(moved)
            return len(moved)

    def reset(self, snapshots: Mapping[Path, Snapshot]) -> None:
        """
        Replace the whole store in one step.

        Args:
            snapshots: The new directory to snapshot mapping
        """
        with self._lock:
            self._snapshots = {Path(k): v for k, v in snapshots.items()}

    def update(self, snapshots: Mapping[Path, Snapshot]) -> None:
        """Replace several entries in one step."""
        with self._lock:
            for key, value in snapshots.items():
                self._snapshots[Path(key)] = value

    def directories(self) -> List[Path]:
        """
        Get the directories currently tracked.

        Returns:
            Sorted list of directory paths
        """
        with self._lock:
            return sorted(self._snapshots)

    def clear(self) -> int:
        """
        Remove all entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            count = len(self._snapshots)
            self._snapshots.clear()
            return count

    def __len__(self) -> int:
        """Return the number of tracked directories."""
        with self._lock:
            return len(self._snapshots)

    def __contains__(self, directory: Path) -> bool:
        """Check if a directory is tracked."""
        with self._lock:
            return Path(directory) in self._snapshots
