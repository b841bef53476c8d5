"""Core sync engine for executing a synchronization run."""

import logging
import time
from pathlib import Path
from typing import Optional

from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TransferSpeedColumn,
)

from ..api import StoreClient
from ..exceptions import CommitError, ManifestFetchError, StoreAPIError
from ..models import Metadata, SyncResult
from ..output import OutputFormatter
from ..utils import CHUNK_SIZE, DEFAULT_MAX_WORKERS, format_size
from .chunker import ChunkAssembler
from .comparator import Changeset, FileComparator
from .scanner import DirectoryScanner, LocalFile
from .uploader import ChunkUploader

logger = logging.getLogger(__name__)


class SyncEngine:
    """Synchronizes a local directory one way into a remote store.

    A run fetches the manifest, scans the tree, computes the changeset,
    uploads it as concurrent chunks and commits once. Any failure aborts
    the run before the commit.
    """

    def __init__(
        self,
        client: StoreClient,
        output: Optional[OutputFormatter] = None,
        scanner: Optional[DirectoryScanner] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        chunk_size: int = CHUNK_SIZE,
    ):
        """Initialize sync engine.

        Args:
            client: Store client
            output: Output formatter for displaying progress/status
            scanner: Inventory source (defaults to a plain DirectoryScanner)
            max_workers: Number of concurrent chunk uploads
            chunk_size: Chunk capacity in bytes
        """
        self.client = client
        self.output = output or OutputFormatter()
        self.scanner = scanner or DirectoryScanner()
        self.comparator = FileComparator()
        self.uploader = ChunkUploader(client, max_workers=max_workers)
        self.chunk_size = chunk_size

    def sync(self, root: Path, dry_run: bool = False) -> SyncResult:
        """Synchronize ``root`` into the store.

        Args:
            root: Local directory to synchronize
            dry_run: If True, only show what would be done

        Returns:
            Statistics of the run

        Raises:
            ValueError: If ``root`` is not an existing directory
            ManifestFetchError: If the manifest cannot be retrieved
            ScanError: If a local file cannot be inventoried or read
            UploadError: If any chunk upload failed
            CommitError: If the commit call failed

        Examples:
            >>> engine = SyncEngine(StoreClient("my-store"))  # doctest: +SKIP
            >>> result = engine.sync(Path("./public"), dry_run=True)  # doctest: +SKIP
        """
        if not root.exists():
            raise ValueError(f"Local directory does not exist: {root}")
        if not root.is_dir():
            raise ValueError(f"Local path is not a directory: {root}")

        self.output.info(f"Syncing: {root} -> {self.client.store_id}")
        if dry_run:
            self.output.info("Dry run: No changes will be made")

        start_time = time.time()
        manifest = self._fetch_manifest()
        local_files = self._scan_local(root)

        changeset = self.comparator.compare(manifest, local_files)
        result = SyncResult(
            uploads=len(changeset.uploads),
            deletes=len(changeset.deletions),
            skips=len(changeset.skipped),
            dry_run=dry_run,
        )
        self._display_sync_plan(changeset)

        if not dry_run:
            self._apply(changeset, result)

        logger.debug(f"Run took {time.time() - start_time:.2f}s")
        self._display_summary(result)
        return result

    def _fetch_manifest(self) -> dict[str, Metadata]:
        try:
            manifest = self.client.list_manifest()
        except StoreAPIError as e:
            raise ManifestFetchError(f"Cannot fetch remote manifest: {e}") from e
        logger.debug(f"Remote manifest holds {len(manifest)} entries")
        return manifest

    def _scan_local(self, root: Path) -> list[LocalFile]:
        scan_start = time.time()
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            disable=self.output.quiet or self.output.json_output,
        ) as progress:
            task = progress.add_task("Scanning local directory...", total=None)
            local_files = self.scanner.scan_local(root)
            progress.update(task, description=f"Found {len(local_files)} file(s)")
        logger.debug(
            f"Local scan took {time.time() - scan_start:.2f}s "
            f"for {len(local_files)} files"
        )
        return local_files

    def _apply(self, changeset: Changeset, result: SyncResult) -> None:
        """Upload the changeset and commit it.

        Nothing is uploaded or committed for an empty changeset.
        """
        assembler = ChunkAssembler(capacity=self.chunk_size)
        # Read every file before the first upload so that a read failure
        # leaves the store untouched.
        chunks = list(assembler.assemble(changeset))

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            disable=self.output.quiet or self.output.json_output,
        ) as progress:
            task = progress.add_task("Uploading...", total=changeset.upload_bytes)

            def on_progress(bytes_uploaded: int, chunks_uploaded: int) -> None:
                progress.update(
                    task,
                    completed=bytes_uploaded,
                    description=f"Uploading ({chunks_uploaded} chunk(s))...",
                )

            result.chunks = self.uploader.upload_all(chunks, on_progress)

        result.bytes_uploaded = changeset.upload_bytes

        if assembler.chunks_emitted == 0:
            logger.debug("No chunks produced, skipping commit")
            return

        try:
            self.client.commit()
        except StoreAPIError as e:
            raise CommitError(
                f"Commit failed after uploading {assembler.chunks_emitted} "
                f"chunk(s): {e}"
            ) from e
        result.committed = True
        logger.debug(f"Committed {assembler.chunks_emitted} chunk(s)")

    def _display_sync_plan(self, changeset: Changeset) -> None:
        if self.output.quiet:
            return

        self.output.info("Sync plan:")
        if changeset.uploads:
            self.output.info(
                f"  ↑ Upload: {len(changeset.uploads)} file(s) "
                f"({format_size(changeset.upload_bytes)})"
            )
        if changeset.deletions:
            self.output.info(f"  ✗ Delete remote: {len(changeset.deletions)} file(s)")
        if changeset.skipped:
            self.output.info(f"  = Skip: {len(changeset.skipped)} file(s)")
        self.output.print("")

    def _display_summary(self, result: SyncResult) -> None:
        if self.output.quiet:
            return

        if result.dry_run:
            self.output.success("Dry run complete!")
        else:
            self.output.success("Sync complete!")

        if result.total_actions > 0:
            self.output.info(f"Total actions: {result.total_actions}")
            if result.uploads > 0:
                verb = "Would upload" if result.dry_run else "Uploaded"
                self.output.info(f"  {verb}: {result.uploads}")
            if result.deletes > 0:
                verb = "Would delete" if result.dry_run else "Deleted"
                self.output.info(f"  {verb}: {result.deletes}")
            if result.chunks > 0:
                self.output.info(f"  Chunks: {result.chunks}")
        else:
            self.output.info("No changes needed - everything is in sync!")
