"""
Stable file identity providers.

A file id must be deterministic for one underlying object and survive
rename/move within the same volume. Ids only need to be hashable and
totally ordered; they are never interpreted.
"""

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Tuple

FileId = Any


class FileIdProvider(ABC):
    """Abstract base class for stable identity providers."""

    @abstractmethod
    def get_id(self, path: Path, stat_result: Optional[os.stat_result] = None) -> FileId:
        """
        Return the stable id of a filesystem entry.

        Args:
            path: Full path to the entry
            stat_result: lstat result already obtained by the caller, if any

        Returns:
            An opaque, totally ordered id

        Raises:
            OSError: If the entry cannot be inspected
        """
        pass


class StatFileIdProvider(FileIdProvider):
    """Identity from (device, inode); stable across renames on one volume."""

    def get_id(self, path: Path, stat_result: Optional[os.stat_result] = None) -> Tuple[int, int]:
        st = stat_result if stat_result is not None else os.lstat(path)
        return (st.st_dev, st.st_ino)
