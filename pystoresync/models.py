"""Data models exchanged with the remote store."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DataType(str, Enum):
    """How the bytes of an item are applied by the store."""

    NEW = "New"
    """First (or only) piece of a file; replaces any stored content"""

    APPEND = "Append"
    """Continuation of a file started by a NEW item in an earlier chunk"""

    DELETE = "Delete"
    """Removal of a stored entry; carries no bytes"""


@dataclass
class Metadata:
    """An entry of the remote manifest."""

    name: str
    """Store key, root-relative and slash-prefixed"""

    size: int
    """Stored size in bytes"""

    timestamp: int
    """Modification time in epoch milliseconds"""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Metadata":
        """Create Metadata from a manifest entry of the API response."""
        return cls(
            name=data["name"],
            size=int(data.get("size", 0)),
            timestamp=int(data.get("timestamp", 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "size": self.size, "timestamp": self.timestamp}


@dataclass
class Item:
    """Descriptor of one file piece or one deletion inside a chunk."""

    key: str
    data_type: DataType
    len: int
    timestamp: int
    content_type: str

    @classmethod
    def delete(cls, key: str) -> "Item":
        """Build the item removing ``key`` from the store."""
        return cls(
            key=key,
            data_type=DataType.DELETE,
            len=0,
            timestamp=0,
            content_type="",
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire shape expected by the store."""
        return {
            "key": self.key,
            "dataType": self.data_type.value,
            "len": self.len,
            "timestamp": self.timestamp,
            "contentType": self.content_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Item":
        return cls(
            key=data["key"],
            data_type=DataType(data["dataType"]),
            len=int(data.get("len", 0)),
            timestamp=int(data.get("timestamp", 0)),
            content_type=data.get("contentType", ""),
        )


@dataclass
class UploadData:
    """One chunk of a run: concatenated bytes plus the items describing them."""

    sequence_id: int
    """Position of the chunk in the run, starting at 0"""

    blob: bytes
    """Content of all non-delete items, in item order"""

    items: list[Item] = field(default_factory=list)
    """Items carried by this chunk"""

    is_final: bool = False
    """True only for the last chunk of the run"""

    @property
    def payload_size(self) -> int:
        """Number of bytes the items claim to carry."""
        return sum(i.len for i in self.items if i.data_type != DataType.DELETE)

    def __repr__(self) -> str:
        return (
            f"UploadData(sequence_id={self.sequence_id}, "
            f"blob=<{len(self.blob)} bytes>, items={len(self.items)}, "
            f"is_final={self.is_final})"
        )


@dataclass
class SyncResult:
    """Statistics of one synchronization run."""

    uploads: int = 0
    deletes: int = 0
    skips: int = 0
    chunks: int = 0
    bytes_uploaded: int = 0
    committed: bool = False
    dry_run: bool = False

    @property
    def total_actions(self) -> int:
        return self.uploads + self.deletes

    def to_dict(self) -> dict[str, Any]:
        return {
            "uploads": self.uploads,
            "deletes": self.deletes,
            "skips": self.skips,
            "chunks": self.chunks,
            "bytes_uploaded": self.bytes_uploaded,
            "committed": self.committed,
            "dry_run": self.dry_run,
        }
