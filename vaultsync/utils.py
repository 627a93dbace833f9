"""Utility functions for vaultsync."""

from datetime import datetime, timezone
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

# User metadata key carrying the source file's mtime on uploaded objects
MTIME_METADATA_KEY: str = "mtime"

# Page size for object listings
DEFAULT_LIST_PAGE_SIZE: int = 1000


# =============================================================================
# Timestamp utilities
#
# All mtimes inside vaultsync are integer milliseconds since the Unix epoch.
# Adapters convert to and from this unit at their boundary.
# =============================================================================


def ms_from_ns(mtime_ns: int) -> int:
    """Convert a nanosecond timestamp (``os.stat().st_mtime_ns``) to ms.

    Examples:
        >>> ms_from_ns(1_700_000_000_123_456_789)
        1700000000123
    """
    return mtime_ns // 1_000_000


def ns_from_ms(mtime_ms: int) -> int:
    """Convert a millisecond timestamp to nanoseconds for ``os.utime``."""
    return mtime_ms * 1_000_000


def ms_from_datetime(dt: datetime) -> int:
    """Convert a datetime to milliseconds since the epoch.

    Naive datetimes are taken to be UTC, which is what S3 returns.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def parse_mtime_metadata(value: Optional[str]) -> Optional[int]:
    """Parse the ``mtime`` object metadata value.

    Returns:
        The mtime in milliseconds, or None if missing or malformed
    """
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def format_timestamp(mtime_ms: Optional[int]) -> str:
    """Format a millisecond timestamp for display in local time."""
    if mtime_ms is None:
        return "-"
    return datetime.fromtimestamp(mtime_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


# =============================================================================
# Path utilities
# =============================================================================


def normalize_path(path: str) -> str:
    """Normalize a relative path to forward slashes with no leading slash.

    Examples:
        >>> normalize_path("notes\\\\daily\\\\a.md")
        'notes/daily/a.md'
        >>> normalize_path("/notes/a.md")
        'notes/a.md'
    """
    return path.replace("\\", "/").lstrip("/")


def normalize_subtree(subtree: Optional[str]) -> Optional[str]:
    """Normalize a subtree prefix so that it ends with a single slash.

    Returns None for an empty subtree (meaning the whole tree).

    Examples:
        >>> normalize_subtree("notes")
        'notes/'
        >>> normalize_subtree("/notes/")
        'notes/'
        >>> normalize_subtree("") is None
        True
    """
    if not subtree:
        return None
    subtree = normalize_path(subtree).rstrip("/")
    if not subtree:
        return None
    return subtree + "/"


def is_in_subtree(path: str, subtree: Optional[str]) -> bool:
    """Check whether a normalized path lies under a normalized subtree."""
    return subtree is None or path.startswith(subtree)


def is_safe_relative_path(path: str) -> bool:
    """Check that a path stays inside the tree it is relative to.

    Rejects empty paths, a leading slash, empty components and ``.`` or
    ``..`` components.

    Examples:
        >>> is_safe_relative_path("notes/a.md")
        True
        >>> is_safe_relative_path("../a.md")
        False
        >>> is_safe_relative_path("/a.md")
        False
    """
    if not isinstance(path, str) or not path:
        return False
    return all(part not in ("", ".", "..") for part in path.split("/"))


# =============================================================================
# Display helpers
# =============================================================================

_SIZE_UNITS = ("KB", "MB", "GB", "TB")


def format_size(size_bytes: int) -> str:
    """Format a byte count for the conflict and status tables.

    Examples:
        >>> format_size(512)
        '512 B'
        >>> format_size(1536)
        '1.5 KB'
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    value = float(size_bytes)
    for unit in _SIZE_UNITS:
        value /= 1024
        if value < 1024 or unit == _SIZE_UNITS[-1]:
            break
    return f"{value:.1f} {unit}"
