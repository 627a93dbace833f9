"""Directory scanning for the local side of a sync."""

import fnmatch
import logging
from pathlib import Path
from typing import Optional

from ..utils import is_in_subtree, ms_from_ns, normalize_subtree
from .models import FileStat

logger = logging.getLogger(__name__)


class DirectoryScanner:
    """Scans a local directory tree into a ``path -> FileStat`` snapshot.

    Paths in the snapshot are relative to the scanned root and always use
    forward slashes.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> snapshot = scanner.snapshot(Path("/sync/vault"))
        >>> # Dot-files and dot-directories are skipped by default

        >>> # With ignore patterns
        >>> scanner = DirectoryScanner(ignore_patterns=["*.tmp", "cache/*"])
        >>> snapshot = scanner.snapshot(Path("/sync/vault"), subtree="notes")
    """

    def __init__(
        self,
        ignore_patterns: Optional[list[str]] = None,
        exclude_dot_files: bool = True,
    ):
        """Initialize directory scanner.

        Args:
            ignore_patterns: Glob patterns matched against relative paths
                (e.g., ["*.log", "temp/*"])
            exclude_dot_files: Whether to skip files/folders starting with dot
        """
        self.ignore_patterns = ignore_patterns or []
        self.exclude_dot_files = exclude_dot_files

    def should_ignore(self, relative_path: str, name: str) -> bool:
        """Check if a path should be ignored.

        Args:
            relative_path: Forward-slash path relative to the scan root
            name: Final path component

        Returns:
            True if path should be ignored
        """
        if self.exclude_dot_files and name.startswith("."):
            return True

        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(
                name, pattern
            ):
                logger.debug(f"Ignoring (pattern {pattern}): {relative_path}")
                return True

        return False

    def is_excluded(self, relative_path: str, subtree: Optional[str] = None) -> bool:
        """Check whether ``snapshot`` would leave out a path.

        Applies ``should_ignore`` to every folder on the way down from the
        scan start, exactly as the walk does. Remote listings are filtered
        with this so that both sides of a sync see the same set of paths.

        Args:
            relative_path: Forward-slash path relative to the root
            subtree: Subtree the snapshot is restricted to, if any
        """
        prefix = normalize_subtree(subtree) or ""
        if not relative_path.startswith(prefix):
            return True

        parts = relative_path[len(prefix) :].split("/")
        for depth in range(1, len(parts) + 1):
            partial = prefix + "/".join(parts[:depth])
            if self.should_ignore(partial, parts[depth - 1]):
                return True
        return False

    def snapshot(
        self, root: Path, subtree: Optional[str] = None
    ) -> dict[str, FileStat]:
        """Recursively scan a directory.

        Args:
            root: Root of the local tree
            subtree: Optional relative folder to restrict the scan to

        Returns:
            Mapping of relative path to FileStat (mtime in milliseconds)
        """
        prefix = normalize_subtree(subtree)
        start = root / prefix if prefix else root
        files: dict[str, FileStat] = {}

        if not start.is_dir():
            logger.debug(f"Nothing to scan at {start}")
            return files

        self._scan(start, root, files)

        if prefix:
            # Ignore patterns may match the prefix itself; keep only the subtree
            files = {p: s for p, s in files.items() if is_in_subtree(p, prefix)}

        logger.debug(f"Scanned {len(files)} local file(s) under {start}")
        return files

    def _scan(self, directory: Path, root: Path, files: dict[str, FileStat]) -> None:
        try:
            entries = list(directory.iterdir())
        except PermissionError:
            # Skip directories we can't read
            logger.debug(f"Permission denied: {directory}")
            return

        for item in entries:
            relative_path = item.relative_to(root).as_posix()
            if self.should_ignore(relative_path, item.name):
                continue

            if item.is_file():
                try:
                    stat = item.stat()
                except OSError:
                    # Skip files we can't read
                    continue
                files[relative_path] = FileStat(
                    size=stat.st_size, mtime=ms_from_ns(stat.st_mtime_ns)
                )
            elif item.is_dir():
                self._scan(item, root, files)
