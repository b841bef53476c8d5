"""Directory scanning utilities for sync operations."""

import fnmatch
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional

from ..exceptions import ScanError
from ..utils import DEFAULT_CONTENT_TYPE, mtime_millis, normalize_key

logger = logging.getLogger(__name__)


def guess_content_type(key: str) -> str:
    """Guess the MIME type of a store key from its extension.

    Examples:
        >>> guess_content_type("/index.html")
        'text/html'
        >>> guess_content_type("/LICENSE")
        'text/plain'
    """
    mime_type, _ = mimetypes.guess_type(key)
    return mime_type or DEFAULT_CONTENT_TYPE


@dataclass
class LocalFile:
    """Represents a local file with metadata."""

    path: Path
    """Absolute path to the file"""

    key: str
    """Store key: root-relative, slash-prefixed, forward slashes"""

    size: int
    """File size in bytes"""

    mtime_ms: int
    """Last modification time (Unix epoch milliseconds, truncated)"""

    content_type: str = DEFAULT_CONTENT_TYPE
    """MIME type sent along with the content"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalFile":
        """Create LocalFile from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating the key

        Returns:
            LocalFile instance

        Raises:
            ScanError: If the file's metadata cannot be read
        """
        try:
            stat = file_path.stat()
        except OSError as e:
            raise ScanError(f"Cannot stat {file_path}: {e}", str(file_path)) from e

        # Use as_posix() to ensure forward slashes on all platforms
        key = normalize_key(file_path.relative_to(base_path).as_posix())
        return cls(
            path=file_path,
            key=key,
            size=stat.st_size,
            mtime_ms=mtime_millis(stat),
            content_type=guess_content_type(key),
        )

    def open(self) -> BinaryIO:
        """Open the file for one sequential read.

        Raises:
            ScanError: If the file vanished or cannot be opened
        """
        try:
            return open(self.path, "rb")
        except OSError as e:
            raise ScanError(f"Cannot open {self.path}: {e}", str(self.path)) from e


class DirectoryScanner:
    """Scans a directory tree and builds the local file inventory.

    Entries are visited in sorted order so that two scans of an unchanged
    tree yield the same sequence.

    Examples:
        >>> scanner = DirectoryScanner(ignore_patterns=["*.tmp", "cache/*"])
        >>> files = scanner.scan_local(Path("/site"))  # doctest: +SKIP
    """

    def __init__(
        self,
        ignore_patterns: Optional[list[str]] = None,
        exclude_dot_files: bool = False,
    ):
        """Initialize directory scanner.

        Args:
            ignore_patterns: Glob patterns to ignore (e.g., ["*.log", "temp/*"])
            exclude_dot_files: Whether to exclude files/folders starting with dot
        """
        self.ignore_patterns = ignore_patterns or []
        self.exclude_dot_files = exclude_dot_files

    def should_ignore(self, path: Path, base_path: Path) -> bool:
        """Check if a path should be ignored based on patterns.

        Args:
            path: Path to check
            base_path: Base path for relative path calculation

        Returns:
            True if path should be ignored
        """
        if self.exclude_dot_files and path.name.startswith("."):
            return True

        relative_path = path.relative_to(base_path).as_posix()
        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(
                path.name, pattern
            ):
                logger.debug(f"Ignoring {relative_path} (matches {pattern})")
                return True
        return False

    def scan_local(
        self, directory: Path, base_path: Optional[Path] = None
    ) -> list[LocalFile]:
        """Recursively scan a local directory.

        Args:
            directory: Directory to scan
            base_path: Base path for calculating keys (defaults to directory)

        Returns:
            List of LocalFile objects, in deterministic order

        Raises:
            ScanError: If a directory or file cannot be read
        """
        if base_path is None:
            base_path = directory

        files: list[LocalFile] = []
        try:
            children = sorted(directory.iterdir())
        except OSError as e:
            raise ScanError(f"Cannot list {directory}: {e}", str(directory)) from e

        for item in children:
            if self.should_ignore(item, base_path):
                continue
            if item.is_dir():
                files.extend(self.scan_local(item, base_path))
            elif item.exists():
                files.append(LocalFile.from_path(item, base_path))
            else:
                raise ScanError(f"Broken link or vanished file: {item}", str(item))

        return files
