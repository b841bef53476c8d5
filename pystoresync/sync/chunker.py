"""Packing of file content into fixed-capacity upload chunks."""

import logging
from collections.abc import Iterator
from typing import BinaryIO, Optional

from ..exceptions import ScanError
from ..models import DataType, Item, Metadata, UploadData
from ..utils import CHUNK_SIZE
from .comparator import Changeset
from .scanner import LocalFile

logger = logging.getLogger(__name__)


class ChunkAssembler:
    """Accumulates file bytes and item descriptors into upload chunks.

    Every chunk except the last one of a pass holds exactly ``capacity``
    bytes. Large files are split across chunks (one NEW item followed by
    APPEND items), small files share chunks. Deletions ride in the final
    chunk and carry no bytes.

    One instance covers one assembly pass; all of its state lives on the
    instance.

    Examples:
        >>> assembler = ChunkAssembler(capacity=4)
        >>> chunks = list(assembler.assemble(changeset))  # doctest: +SKIP
    """

    def __init__(self, capacity: int = CHUNK_SIZE):
        """Initialize chunk assembler.

        Args:
            capacity: Size of a full chunk in bytes
        """
        if capacity <= 0:
            raise ValueError(f"Chunk capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.remaining_capacity = capacity
        self.pending_blob = bytearray()
        self.pending_items: list[Item] = []
        self.next_sequence_id = 0
        self._has_changes = False
        self._finished = False

    @property
    def chunks_emitted(self) -> int:
        return self.next_sequence_id

    def _check_open(self) -> None:
        if self._finished:
            raise RuntimeError("Assembly pass already finished")

    def _emit(self, is_final: bool) -> UploadData:
        chunk = UploadData(
            sequence_id=self.next_sequence_id,
            blob=bytes(self.pending_blob),
            items=self.pending_items,
            is_final=is_final,
        )
        logger.debug(f"Emitting {chunk!r}")
        self.next_sequence_id += 1
        self.pending_blob = bytearray()
        self.pending_items = []
        self.remaining_capacity = self.capacity
        return chunk

    def _read_exactly(
        self, stream: BinaryIO, size: int, local_file: LocalFile
    ) -> None:
        """Append exactly ``size`` bytes of ``stream`` to the pending blob."""
        remaining = size
        while remaining > 0:
            data = stream.read(remaining)
            if not data:
                raise ScanError(
                    f"{local_file.path} shrank while reading: expected "
                    f"{local_file.size} bytes",
                    str(local_file.path),
                )
            self.pending_blob.extend(data)
            remaining -= len(data)

    def add_file(self, local_file: LocalFile) -> list[UploadData]:
        """Pack one file, reading its content from disk.

        Args:
            local_file: File needing upload

        Returns:
            Chunks completed while packing this file (possibly none)
        """
        with local_file.open() as stream:
            try:
                return self.add_stream(local_file, stream)
            except OSError as e:
                raise ScanError(
                    f"Cannot read {local_file.path}: {e}", str(local_file.path)
                ) from e

    def add_stream(
        self, local_file: LocalFile, stream: BinaryIO
    ) -> list[UploadData]:
        """Pack ``local_file.size`` bytes of ``stream`` under the file's key.

        Args:
            local_file: Metadata of the file (key, size, timestamp, type)
            stream: Sequential reader positioned at the start of the content

        Returns:
            Chunks completed while packing this file (possibly none)
        """
        self._check_open()
        chunks: list[UploadData] = []
        data_type = DataType.NEW
        remaining = local_file.size

        while remaining >= self.remaining_capacity:
            piece = self.remaining_capacity
            self._read_exactly(stream, piece, local_file)
            self.pending_items.append(self._item(local_file, data_type, piece))
            chunks.append(self._emit(is_final=False))
            data_type = DataType.APPEND
            remaining -= piece

        # A split file ending on a chunk boundary has no tail
        if remaining > 0 or data_type == DataType.NEW:
            self._read_exactly(stream, remaining, local_file)
            self.remaining_capacity -= remaining
            self.pending_items.append(self._item(local_file, data_type, remaining))

        self._has_changes = True
        return chunks

    def add_deletion(self, remote: Metadata) -> None:
        """Queue removal of a remote entry in the pending chunk."""
        self._check_open()
        self.pending_items.append(Item.delete(remote.name))
        self._has_changes = True

    def finish(self) -> Optional[UploadData]:
        """Close the pass and emit the final chunk.

        Returns:
            The final chunk (its blob may be empty), or None if no file or
            deletion was added during the pass
        """
        self._check_open()
        self._finished = True
        if not self._has_changes:
            return None
        return self._emit(is_final=True)

    def assemble(self, changeset: Changeset) -> Iterator[UploadData]:
        """Yield every chunk of a changeset, in sequence order.

        Files are packed in inventory order, then deletions are added and
        the final chunk is emitted.
        """
        for local_file in changeset.uploads:
            yield from self.add_file(local_file)
        for remote in changeset.deletions:
            self.add_deletion(remote)
        final_chunk = self.finish()
        if final_chunk is not None:
            yield final_chunk

    @staticmethod
    def _item(local_file: LocalFile, data_type: DataType, length: int) -> Item:
        return Item(
            key=local_file.key,
            data_type=data_type,
            len=length,
            timestamp=local_file.mtime_ms,
            content_type=local_file.content_type,
        )
