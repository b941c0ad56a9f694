"""Ignored-subfolder filtering relative to a watch root."""

from pathlib import Path
from typing import FrozenSet, Iterable


class IgnoreFilter:
    """
    Decides whether a path falls under an ignored subfolder.

    Names are matched exactly against single path segments between the
    root and the candidate; there is no globbing.
    """

    def __init__(self, root: Path, names: Iterable[str] = ()):
        self.root = Path(root)
        self.names: FrozenSet[str] = frozenset(name for name in names if name)

    def _segments(self, directory: Path):
        try:
            return Path(directory).relative_to(self.root).parts
        except ValueError:
            return ()

    def is_ignored_directory(self, directory: Path) -> bool:
        """
        Check if a directory is, or is inside, an ignored subfolder.

        Args:
            directory: Directory to check

        Returns:
            True if any segment below the root is an ignored name
        """
        if not self.names:
            return False
        return any(part in self.names for part in self._segments(directory))

    def is_ignored(self, path: Path) -> bool:
        """
        Check if changes to a path must be suppressed.

        The ignored folder itself is a child of a watched folder and is
        not ignored; only what lives inside it is.
        """
        return self.is_ignored_directory(Path(path).parent)

    def __bool__(self) -> bool:
        return bool(self.names)
