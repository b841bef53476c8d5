"""Concurrent dispatch of upload chunks."""

import logging
import time
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Optional

from ..api import StoreClient
from ..exceptions import UploadError
from ..models import UploadData
from ..utils import DEFAULT_MAX_WORKERS

logger = logging.getLogger(__name__)


class ChunkUploader:
    """Uploads the chunks of one run concurrently.

    Every chunk is submitted before any result is awaited. A failed upload
    does not cancel the others; once all have settled, the run fails as a
    whole and the caller must not commit.
    """

    def __init__(self, client: StoreClient, max_workers: int = DEFAULT_MAX_WORKERS):
        """Initialize chunk uploader.

        Args:
            client: Store client used for the uploads
            max_workers: Number of uploads in flight at once
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.client = client
        self.max_workers = max_workers

    def _upload_chunk(self, chunk: UploadData) -> tuple[int, float]:
        start = time.time()
        self.client.upload(
            chunk.sequence_id,
            chunk.blob,
            chunk.items,
            chunk.is_final,
        )
        return len(chunk.blob), time.time() - start

    def upload_all(
        self,
        chunks: Iterable[UploadData],
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> int:
        """Upload every chunk and wait for all of them.

        Args:
            chunks: Chunks of the run, in sequence order
            progress_callback: Optional callback
                function(bytes_uploaded, chunks_uploaded)

        Returns:
            Number of chunks uploaded

        Raises:
            UploadError: If at least one upload failed
        """
        futures: dict[Future, UploadData] = {}
        failures: dict[int, Exception] = {}
        bytes_uploaded = 0
        chunks_uploaded = 0

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for chunk in chunks:
                futures[executor.submit(self._upload_chunk, chunk)] = chunk
            logger.debug(
                f"Submitted {len(futures)} chunk(s) with {self.max_workers} workers"
            )

            for future in as_completed(futures):
                chunk = futures[future]
                try:
                    size, elapsed = future.result()
                except Exception as e:
                    logger.debug(f"Chunk {chunk.sequence_id} failed: {e}")
                    failures[chunk.sequence_id] = e
                    continue
                bytes_uploaded += size
                chunks_uploaded += 1
                logger.debug(
                    f"Uploaded chunk {chunk.sequence_id} "
                    f"({size} bytes, {len(chunk.items)} item(s)) in {elapsed:.2f}s"
                )
                if progress_callback:
                    progress_callback(bytes_uploaded, chunks_uploaded)

        if failures:
            first_id = min(failures)
            message = (
                f"{len(failures)} of {len(futures)} chunk upload(s) failed; "
                f"chunk {first_id}: {failures[first_id]}"
            )
            raise UploadError(message, sequence_id=first_id) from failures[first_id]

        return chunks_uploaded
