"""Sync engine for pystoresync - incremental chunked upload of a directory."""

from .chunker import ChunkAssembler
from .comparator import Changeset, FileComparator
from .engine import SyncEngine
from .scanner import DirectoryScanner, LocalFile, guess_content_type
from .uploader import ChunkUploader

__all__ = [
    "SyncEngine",
    "Changeset",
    "ChunkAssembler",
    "ChunkUploader",
    "DirectoryScanner",
    "FileComparator",
    "LocalFile",
    "guess_content_type",
]
