"""Utility functions for pystoresync."""

import os

# =============================================================================
# Constants for chunked uploads
# =============================================================================

# Capacity of one upload chunk in bytes
CHUNK_SIZE: int = 2_000_000

# Number of concurrent chunk uploads
DEFAULT_MAX_WORKERS: int = 10

# Default remote store endpoint
DEFAULT_API_URL: str = "https://icp0.io"

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Content type used when none can be guessed from the file name
DEFAULT_CONTENT_TYPE: str = "text/plain"


# =============================================================================
# Timestamp utilities
# =============================================================================


def mtime_millis(stat_result: os.stat_result) -> int:
    """Return the modification time of a stat result in epoch milliseconds.

    The value is truncated, not rounded, so that a file touched within the
    same millisecond keeps the same timestamp.

    Args:
        stat_result: Result of ``os.stat``

    Returns:
        Modification time in milliseconds since the Unix epoch
    """
    return stat_result.st_mtime_ns // 1_000_000


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def normalize_key(relative_path: str) -> str:
    """Turn a root-relative posix path into a store key.

    Examples:
        >>> normalize_key("docs/index.html")
        '/docs/index.html'
        >>> normalize_key("/a.txt")
        '/a.txt'
    """
    return "/" + relative_path.lstrip("/")
