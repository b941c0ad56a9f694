"""Data models for the snapwatch package."""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional


class ChangeKind(Enum):
    """Kinds of logical file system changes."""
    ADD = "add"
    DELETE = "delete"
    MODIFY = "modify"
    RENAME = "rename"


@dataclass(frozen=True)
class FileSystemChange:
    """
    One logical change derived from a snapshot diff.

    Attributes:
        kind: The type of change
        path: Full path of the affected entry (the new path for renames)
        old_path: For RENAME changes, the previous full path
    """
    kind: ChangeKind
    path: Path
    old_path: Optional[Path] = None

    def __post_init__(self):
        if self.kind == ChangeKind.RENAME:
            if self.old_path is None:
                raise ValueError("old_path is required for rename changes")
        elif self.old_path is not None:
            raise ValueError(f"old_path is only valid for rename changes, got {self.kind.value}")

    @classmethod
    def add(cls, path: Path) -> "FileSystemChange":
        return cls(ChangeKind.ADD, path)

    @classmethod
    def delete(cls, path: Path) -> "FileSystemChange":
        return cls(ChangeKind.DELETE, path)

    @classmethod
    def modify(cls, path: Path) -> "FileSystemChange":
        return cls(ChangeKind.MODIFY, path)

    @classmethod
    def rename(cls, old_path: Path, path: Path) -> "FileSystemChange":
        return cls(ChangeKind.RENAME, path, old_path)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "kind": self.kind.value,
            "path": str(self.path),
            "old_path": str(self.old_path) if self.old_path else None,
        }

    def __str__(self) -> str:
        if self.kind == ChangeKind.RENAME:
            return f"{self.kind.value}: {self.old_path} -> {self.path}"
        return f"{self.kind.value}: {self.path}"


@dataclass
class RawFSEvent:
    """
    Raw event from the native watcher before aggregation.

    Attributes:
        src_path: Source path of the event
        dest_path: Destination path (for move events)
        is_synthetic: True for an entry that already existed inside a folder
            moved in from outside the root
    """
    src_path: Path
    dest_path: Optional[Path] = None
    is_synthetic: bool = False

    def paths(self) -> Iterator[Path]:
        """Yield every path touched by this event."""
        yield self.src_path
        if self.dest_path is not None:
            yield self.dest_path


@dataclass(frozen=True)
class ProviderFailure:
    """
    Notification that the native provider stopped delivering events.

    Attributes:
        root: The watched root
        error: The exception describing the failure
        recovered: True if the provider was re-enabled automatically
        timestamp: Unix timestamp when the failure was handled
    """
    root: Path
    error: Exception
    recovered: bool
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "root": str(self.root),
            "error": f"{type(self.error).__name__}: {self.error}",
            "recovered": self.recovered,
            "timestamp": self.timestamp,
        }
