"""Tests for the sync engine."""

import os
import tempfile
import threading
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from pystoresync.api import StoreClient
from pystoresync.exceptions import (
    CommitError,
    ManifestFetchError,
    ScanError,
    StoreAPIError,
    StoreNetworkError,
    UploadError,
)
from pystoresync.models import DataType, Item, Metadata
from pystoresync.output import OutputFormatter
from pystoresync.sync import DirectoryScanner, LocalFile, SyncEngine
from pystoresync.utils import CHUNK_SIZE


def _set_mtime_ms(path: Path, mtime_ms: int) -> None:
    ns = mtime_ms * 1_000_000
    os.utime(path, ns=(ns, ns))


class InMemoryStore:
    """Store double applying uploaded chunks by sequence id on commit."""

    store_id = "memory"

    def __init__(self):
        self.entries: dict[str, tuple[bytearray, int, str]] = {}
        self.pending: dict[int, tuple[bytes, list[Item], bool]] = {}
        self.upload_calls = 0
        self.commit_calls = 0
        self._lock = threading.Lock()

    def list_manifest(self) -> dict[str, Metadata]:
        return {
            name: Metadata(name=name, size=len(data), timestamp=timestamp)
            for name, (data, timestamp, _) in self.entries.items()
        }

    def upload(self, sequence_id, blob, items, is_final):
        with self._lock:
            self.upload_calls += 1
            wire_items = [Item.from_dict(item.to_dict()) for item in items]
            self.pending[sequence_id] = (blob, wire_items, is_final)

    def commit(self):
        self.commit_calls += 1
        for sequence_id in sorted(self.pending):
            blob, items, _ = self.pending[sequence_id]
            offset = 0
            for item in items:
                if item.data_type == DataType.DELETE:
                    self.entries.pop(item.key, None)
                    continue
                data = blob[offset : offset + item.len]
                offset += item.len
                if item.data_type == DataType.NEW:
                    self.entries[item.key] = (
                        bytearray(data),
                        item.timestamp,
                        item.content_type,
                    )
                else:
                    self.entries[item.key][0].extend(data)
        self.pending.clear()


class TestSyncEngine:
    """Test SyncEngine functionality."""

    @pytest.fixture
    def mock_client(self):
        """Create a mock store client with an empty manifest."""
        client = Mock(spec=StoreClient)
        client.store_id = "test-store"
        client.list_manifest.return_value = {}
        return client

    @pytest.fixture
    def mock_output(self):
        """Create a mock output formatter."""
        output = Mock(spec=OutputFormatter)
        output.quiet = True  # Suppress output during tests
        output.json_output = False
        return output

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for testing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    @pytest.fixture
    def sync_engine(self, mock_client, mock_output):
        """Create a sync engine instance."""
        return SyncEngine(mock_client, mock_output)

    def test_create_sync_engine(self, mock_client, mock_output):
        engine = SyncEngine(mock_client, mock_output, max_workers=3)
        assert engine.client == mock_client
        assert engine.output == mock_output
        assert engine.uploader.max_workers == 3

    def test_sync_invalid_local_path(self, sync_engine, temp_dir):
        with pytest.raises(ValueError, match="does not exist"):
            sync_engine.sync(temp_dir / "nonexistent")

    def test_sync_local_path_not_directory(self, sync_engine, temp_dir):
        test_file = temp_dir / "test.txt"
        test_file.write_text("test")

        with pytest.raises(ValueError, match="not a directory"):
            sync_engine.sync(test_file)

    def test_new_file_uploaded_in_one_final_chunk(
        self, sync_engine, mock_client, temp_dir
    ):
        path = temp_dir / "a.txt"
        path.write_bytes(b"a" * 500)
        _set_mtime_ms(path, 1000)

        result = sync_engine.sync(temp_dir)

        mock_client.upload.assert_called_once_with(
            0,
            b"a" * 500,
            [Item("/a.txt", DataType.NEW, 500, 1000, "text/plain")],
            True,
        )
        mock_client.commit.assert_called_once_with()
        assert result.uploads == 1
        assert result.chunks == 1
        assert result.bytes_uploaded == 500
        assert result.committed

    def test_remote_only_entry_deleted(self, sync_engine, mock_client, temp_dir):
        mock_client.list_manifest.return_value = {
            "/b.txt": Metadata(name="/b.txt", size=10, timestamp=5)
        }

        result = sync_engine.sync(temp_dir)

        mock_client.upload.assert_called_once_with(
            0, b"", [Item("/b.txt", DataType.DELETE, 0, 0, "")], True
        )
        mock_client.commit.assert_called_once_with()
        assert result.deletes == 1

    def test_file_of_exactly_chunk_size(self, sync_engine, mock_client, temp_dir):
        (temp_dir / "big.bin").write_bytes(b"\0" * CHUNK_SIZE)

        result = sync_engine.sync(temp_dir)

        calls = sorted(
            (c.args for c in mock_client.upload.call_args_list), key=lambda a: a[0]
        )
        assert len(calls) == 2
        seq0, blob0, items0, final0 = calls[0]
        assert (seq0, len(blob0), final0) == (0, CHUNK_SIZE, False)
        assert [(i.data_type, i.len) for i in items0] == [(DataType.NEW, CHUNK_SIZE)]
        assert calls[1] == (1, b"", [], True)
        mock_client.commit.assert_called_once_with()
        assert result.chunks == 2

    def test_unchanged_file_produces_no_chunk_and_no_commit(
        self, sync_engine, mock_client, temp_dir
    ):
        path = temp_dir / "same.txt"
        path.write_bytes(b"0123456789")
        _set_mtime_ms(path, 5)
        mock_client.list_manifest.return_value = {
            "/same.txt": Metadata(name="/same.txt", size=10, timestamp=5)
        }

        result = sync_engine.sync(temp_dir)

        mock_client.upload.assert_not_called()
        mock_client.commit.assert_not_called()
        assert result.skips == 1
        assert result.chunks == 0
        assert not result.committed

    def test_empty_directory_and_store(self, sync_engine, mock_client, temp_dir):
        result = sync_engine.sync(temp_dir)

        mock_client.upload.assert_not_called()
        mock_client.commit.assert_not_called()
        assert result.total_actions == 0

    def test_dry_run_changes_nothing(self, sync_engine, mock_client, temp_dir):
        (temp_dir / "file1.txt").write_text("content1")
        mock_client.list_manifest.return_value = {
            "/old.txt": Metadata(name="/old.txt", size=1, timestamp=1)
        }

        result = sync_engine.sync(temp_dir, dry_run=True)

        assert result.dry_run
        assert result.uploads == 1
        assert result.deletes == 1
        mock_client.upload.assert_not_called()
        mock_client.commit.assert_not_called()


class TestSyncEngineErrors:
    """Each failure aborts the run before the commit."""

    @pytest.fixture
    def temp_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir)
            (path / "a.txt").write_text("hello")
            yield path

    @pytest.fixture
    def mock_client(self):
        client = Mock(spec=StoreClient)
        client.store_id = "test-store"
        client.list_manifest.return_value = {}
        return client

    @pytest.fixture
    def sync_engine(self, mock_client):
        return SyncEngine(mock_client, OutputFormatter(quiet=True))

    def test_manifest_failure(self, sync_engine, mock_client, temp_dir):
        mock_client.list_manifest.side_effect = StoreNetworkError("unreachable")

        with pytest.raises(ManifestFetchError, match="unreachable"):
            sync_engine.sync(temp_dir)

        mock_client.upload.assert_not_called()
        mock_client.commit.assert_not_called()

    def test_scan_failure(self, sync_engine, mock_client, temp_dir):
        with patch.object(
            sync_engine.scanner, "scan_local", side_effect=ScanError("denied")
        ):
            with pytest.raises(ScanError):
                sync_engine.sync(temp_dir)

        mock_client.upload.assert_not_called()
        mock_client.commit.assert_not_called()

    def test_read_failure_during_chunking_uploads_nothing(self, mock_client, temp_dir):
        big = temp_dir / "a.bin"
        big.write_bytes(b"x" * 40)
        vanished = LocalFile(
            path=temp_dir / "gone.bin", key="/gone.bin", size=8, mtime_ms=1
        )
        scanner = Mock(spec=DirectoryScanner)
        scanner.scan_local.return_value = [LocalFile.from_path(big, temp_dir), vanished]
        engine = SyncEngine(
            mock_client, OutputFormatter(quiet=True), scanner=scanner, chunk_size=16
        )

        with pytest.raises(ScanError):
            engine.sync(temp_dir)

        assert mock_client.upload.call_count == 0
        mock_client.commit.assert_not_called()

    def test_upload_failure_skips_commit(self, sync_engine, mock_client, temp_dir):
        mock_client.upload.side_effect = StoreAPIError("too large")

        with pytest.raises(UploadError, match="too large"):
            sync_engine.sync(temp_dir)

        mock_client.commit.assert_not_called()

    def test_commit_failure(self, sync_engine, mock_client, temp_dir):
        mock_client.commit.side_effect = StoreAPIError("conflict")

        with pytest.raises(CommitError, match="conflict"):
            sync_engine.sync(temp_dir)

        assert mock_client.commit.call_count == 1


class TestSyncAgainstStore:
    """End-to-end runs against an in-memory store."""

    @pytest.fixture
    def temp_dir(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    @pytest.fixture
    def store(self):
        return InMemoryStore()

    def _engine(self, store: InMemoryStore, chunk_size: int = 16) -> SyncEngine:
        return SyncEngine(
            store,  # type: ignore[arg-type]
            OutputFormatter(quiet=True),
            max_workers=4,
            chunk_size=chunk_size,
        )

    def test_store_content_matches_tree(self, store, temp_dir):
        (temp_dir / "docs").mkdir()
        (temp_dir / "docs" / "index.html").write_bytes(b"<html>" * 10)
        (temp_dir / "big.bin").write_bytes(bytes(range(256)) * 3)
        (temp_dir / "empty").write_bytes(b"")

        self._engine(store).sync(temp_dir)

        assert {k: bytes(v[0]) for k, v in store.entries.items()} == {
            "/docs/index.html": b"<html>" * 10,
            "/big.bin": bytes(range(256)) * 3,
            "/empty": b"",
        }
        assert store.entries["/docs/index.html"][2] == "text/html"

    def test_second_run_is_a_no_op(self, store, temp_dir):
        (temp_dir / "a.txt").write_text("alpha")
        (temp_dir / "b.txt").write_text("beta" * 20)

        first = self._engine(store).sync(temp_dir)
        uploads_after_first = store.upload_calls
        second = self._engine(store).sync(temp_dir)

        assert first.committed
        assert second.chunks == 0
        assert not second.committed
        assert store.upload_calls == uploads_after_first
        assert store.commit_calls == 1

    def test_changed_and_removed_files(self, store, temp_dir):
        (temp_dir / "keep.txt").write_text("keep")
        (temp_dir / "edit.txt").write_text("v1")
        (temp_dir / "drop.txt").write_text("drop")
        self._engine(store).sync(temp_dir)

        (temp_dir / "edit.txt").write_text("version two")
        (temp_dir / "drop.txt").unlink()
        result = self._engine(store).sync(temp_dir)

        assert result.uploads == 1
        assert result.deletes == 1
        assert result.skips == 1
        assert set(store.entries) == {"/keep.txt", "/edit.txt"}
        assert bytes(store.entries["/edit.txt"][0]) == b"version two"
