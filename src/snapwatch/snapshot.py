"""
Point-in-time directory snapshots and the diff between two of them.

A snapshot holds one directory's immediate children sorted by stable file
id. Diffing two snapshots of the same directory is a sorted merge on that
id: an id present on one side only is an add or a delete, and an id present
on both sides with a different path is a rename. Matching on identity
instead of on path is what tells "rename a to b" apart from "delete a,
create b".
"""

import fnmatch
import logging
import os
import stat
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .identity import FileId, FileIdProvider, StatFileIdProvider
from .ignore import IgnoreFilter
from .models import FileSystemChange

logger = logging.getLogger(__name__)

_default_identity = StatFileIdProvider()


@dataclass(frozen=True)
class FileSystemEntry:
    """
    One child of a snapshotted directory.

    Attributes:
        id: Stable identity of the underlying object
        path: Full path of the entry
        last_modified: Last write time as a POSIX timestamp
        is_directory: Whether the entry is a folder (symlinks are not followed)
    """
    id: FileId
    path: Path
    last_modified: float
    is_directory: bool = False


class Snapshot:
    """
    Immutable, id-sorted listing of one directory's immediate children.
    """

    __slots__ = ("directory", "_entries")

    def __init__(self, directory: Path, entries: Iterable[FileSystemEntry] = ()):
        self.directory = Path(directory)
        self._entries: Tuple[FileSystemEntry, ...] = tuple(sorted(entries, key=lambda e: e.id))

    @classmethod
    def empty(cls, directory: Path) -> "Snapshot":
        """Snapshot of a directory that is gone, ignored, or never observed."""
        return cls(directory)

    @classmethod
    def build(
        cls,
        directory: Path,
        identity: Optional[FileIdProvider] = None,
        name_filter: str = "*",
        ignore: Optional[IgnoreFilter] = None,
    ) -> "Snapshot":
        """
        Scan a directory's immediate children.

        Args:
            directory: Directory to scan
            identity: Stable id provider (defaults to device/inode)
            name_filter: Glob that file names must match; directories always pass
            ignore: Filter for ignored subfolders

        Returns:
            A new Snapshot; empty if the directory is gone or ignored
        """
        directory = Path(directory)
        identity = identity or _default_identity

        if ignore is not None and ignore.is_ignored_directory(directory):
            return cls.empty(directory)

        entries = []
        try:
            with os.scandir(directory) as it:
                for dir_entry in it:
                    try:
                        st = os.lstat(dir_entry.path)
                        is_directory = stat.S_ISDIR(st.st_mode)
                        if name_filter != "*" and not is_directory:
                            if not fnmatch.fnmatch(dir_entry.name, name_filter):
                                continue
                        path = Path(dir_entry.path)
                        entries.append(FileSystemEntry(
                            identity.get_id(path, st), path, st.st_mtime, is_directory,
                        ))
                    except FileNotFoundError:
                        # removed between listing and stat
                        continue
        except (FileNotFoundError, NotADirectoryError):
            logger.debug(f"Snapshot of missing directory: {directory}")
            return cls.empty(directory)

        return cls(directory, entries)

    @property
    def entries(self) -> Tuple[FileSystemEntry, ...]:
        return self._entries

    def relocate(self, old: Path, new: Path) -> "Snapshot":
        """Return this snapshot with the `old` path prefix replaced by `new`."""
        return Snapshot(
            new / self.directory.relative_to(old),
            (replace(e, path=new / e.path.relative_to(old)) for e in self._entries),
        )

    def diff(self, current: "Snapshot", latency: float) -> List[FileSystemChange]:
        """
        Enumerate the changes between this snapshot and a more recent one.

        Args:
            current: The newer snapshot of the same directory
            latency: Minimum mtime advance, in seconds, reported as a modification

        Returns:
            Changes sorted by path
        """
        old = self._entries
        new = current._entries

        if not old:
            return sorted((FileSystemChange.add(e.path) for e in new), key=_by_path)
        if not new:
            return sorted((FileSystemChange.delete(e.path) for e in old), key=_by_path)

        changes: List[FileSystemChange] = []
        i = j = 0
        while i < len(old) and j < len(new):
            before = old[i]
            after = new[j]
            if before.id < after.id:
                changes.append(FileSystemChange.delete(before.path))
                i += 1
            elif before.id > after.id:
                changes.append(FileSystemChange.add(after.path))
                j += 1
            else:
                if before.path != after.path:
                    changes.append(FileSystemChange.rename(before.path, after.path))
                # a folder's mtime tracks its children, which are diffed on their own
                if not after.is_directory and after.last_modified - before.last_modified > latency:
                    changes.append(FileSystemChange.modify(after.path))
                i += 1
                j += 1

        changes.extend(FileSystemChange.delete(e.path) for e in old[i:])
        changes.extend(FileSystemChange.add(e.path) for e in new[j:])

        changes.sort(key=_by_path)
        return changes

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __contains__(self, path) -> bool:
        path = Path(path)
        return any(e.path == path for e in self._entries)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Snapshot):
            return NotImplemented
        return self.directory == other.directory and self._entries == other._entries

    def __hash__(self) -> int:
        return hash((self.directory, self._entries))

    def __repr__(self) -> str:
        return f"<Snapshot {self.directory} entries={len(self._entries)}>"


def _by_path(change: FileSystemChange) -> str:
    return str(change.path)
