"""
Tests for FilesystemSnapshotStore.
"""

from pathlib import Path

import pytest

from route_flow_editor.backends import FilesystemSnapshotStore
from route_flow_editor.exceptions import SnapshotError


class TestFilesystemSnapshotStore:
    """Tests for FilesystemSnapshotStore."""

    @pytest.fixture
    def store(self, tmp_path: Path) -> FilesystemSnapshotStore:
        """Create a FilesystemSnapshotStore for testing."""
        return FilesystemSnapshotStore(base_dir=str(tmp_path))

    @pytest.mark.asyncio
    async def test_directory_created_on_first_write(self, tmp_path: Path) -> None:
        """Test that base directory is created on first write."""
        slot_dir = tmp_path / "slots"
        store = FilesystemSnapshotStore(base_dir=str(slot_dir))
        assert not slot_dir.exists()

        await store.write("tempFlowData", b"payload")

        assert (slot_dir / "tempFlowData.msgpack").read_bytes() == b"payload"

    @pytest.mark.asyncio
    async def test_read_missing(self, store: FilesystemSnapshotStore) -> None:
        assert await store.read("tempFlowData") is None
        assert not store.exists("tempFlowData")

    @pytest.mark.asyncio
    async def test_write_replaces(self, store: FilesystemSnapshotStore, tmp_path: Path) -> None:
        """Test that a write replaces the slot and leaves no temp file."""
        await store.write("tempFlowData", b"first")
        await store.write("tempFlowData", b"second")

        assert await store.read("tempFlowData") == b"second"
        assert [p.name for p in tmp_path.iterdir()] == ["tempFlowData.msgpack"]

    @pytest.mark.asyncio
    async def test_clear_is_idempotent(self, store: FilesystemSnapshotStore) -> None:
        await store.write("tempFlowData", b"data")
        await store.clear("tempFlowData")
        await store.clear("tempFlowData")
        assert not store.exists("tempFlowData")

    @pytest.mark.asyncio
    async def test_custom_suffix(self, tmp_path: Path) -> None:
        store = FilesystemSnapshotStore(base_dir=str(tmp_path), suffix=".bin")
        await store.write("slot", b"x")
        assert (tmp_path / "slot.bin").exists()

    @pytest.mark.asyncio
    async def test_rejects_unsafe_keys(self, store: FilesystemSnapshotStore) -> None:
        with pytest.raises(SnapshotError):
            await store.write("../escape", b"x")
        with pytest.raises(SnapshotError):
            store.exists("a/b")
        with pytest.raises(SnapshotError):
            store.validate_key("")
        store.validate_key("tempFlowData")

    @pytest.mark.asyncio
    async def test_write_failure_raises_snapshot_error(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = FilesystemSnapshotStore(base_dir=str(blocker / "slots"))
        with pytest.raises(SnapshotError):
            await store.write("tempFlowData", b"x")
