"""File comparison logic for sync operations."""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from ..models import Metadata
from .scanner import LocalFile

logger = logging.getLogger(__name__)


@dataclass
class Changeset:
    """Result of comparing the local inventory with the remote manifest."""

    uploads: list[LocalFile] = field(default_factory=list)
    """New or modified local files, in inventory order"""

    deletions: list[Metadata] = field(default_factory=list)
    """Remote entries with no local counterpart, in manifest order"""

    skipped: list[str] = field(default_factory=list)
    """Keys found unchanged on both sides"""

    @property
    def is_empty(self) -> bool:
        """True if there is nothing to upload or delete."""
        return not self.uploads and not self.deletions

    @property
    def upload_bytes(self) -> int:
        return sum(f.size for f in self.uploads)


class FileComparator:
    """Compares local files against the remote manifest.

    Local always wins: a file is skipped only when the store holds an entry
    with the same key, size and millisecond timestamp. Content is never
    hashed, so a modification preserving both size and timestamp goes
    unnoticed.
    """

    @staticmethod
    def is_unchanged(local_file: LocalFile, remote: Metadata) -> bool:
        return (
            remote.timestamp == local_file.mtime_ms and remote.size == local_file.size
        )

    def compare(
        self,
        manifest: Mapping[str, Metadata],
        local_files: Iterable[LocalFile],
    ) -> Changeset:
        """Compute the changeset of one run.

        The manifest is left untouched; matched keys are tracked separately.

        Args:
            manifest: Remote entries keyed by name
            local_files: Local inventory, in scan order

        Returns:
            Changeset with uploads, deletions and skipped keys
        """
        changeset = Changeset()
        matched: set[str] = set()

        for local_file in local_files:
            remote = manifest.get(local_file.key)
            if remote is not None:
                matched.add(local_file.key)
                if self.is_unchanged(local_file, remote):
                    logger.debug(f"skipping {local_file.key}")
                    changeset.skipped.append(local_file.key)
                    continue
            logger.debug(f"uploading {local_file.key} ({local_file.size} bytes)")
            changeset.uploads.append(local_file)

        for name, remote in sorted(manifest.items()):
            if name not in matched:
                logger.debug(f"deleting {name}")
                changeset.deletions.append(remote)

        return changeset
