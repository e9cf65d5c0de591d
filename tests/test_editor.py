"""
Tests for RouteFlowEditor configuration and route switching.
"""

from pathlib import Path

import pytest

from route_flow_editor import (
    EntityRegistry,
    FilesystemSnapshotStore,
    MemorySnapshotStore,
    Node,
    Route,
    RouteFlowEditor,
    RouteNotFoundError,
)


class TestSnapshotStoreConfig:
    """Tests for snapshot store selection."""

    def test_default_is_memory(self):
        editor = RouteFlowEditor()
        assert isinstance(editor.store, MemorySnapshotStore)
        assert editor.registry.routes == []

    def test_path_alone_selects_filesystem(self, tmp_path: Path):
        editor = RouteFlowEditor(snapshot_path=tmp_path)
        assert isinstance(editor.store, FilesystemSnapshotStore)
        assert editor.store.base_dir == tmp_path

    def test_string_options(self, tmp_path: Path):
        assert isinstance(RouteFlowEditor(snapshot_store="MEMORY").store, MemorySnapshotStore)
        editor = RouteFlowEditor(snapshot_store="filesystem", snapshot_path=str(tmp_path))
        assert isinstance(editor.store, FilesystemSnapshotStore)

    def test_instance_is_used(self):
        store = MemorySnapshotStore()
        assert RouteFlowEditor(snapshot_store=store).store is store

    def test_invalid_configurations(self, tmp_path: Path):
        with pytest.raises(ValueError, match="Invalid snapshot store"):
            RouteFlowEditor(snapshot_store="redis")
        with pytest.raises(ValueError):
            RouteFlowEditor(snapshot_store=MemorySnapshotStore(), snapshot_path=tmp_path)
        with pytest.raises(ValueError):
            RouteFlowEditor(snapshot_store="memory", snapshot_path=tmp_path)
        with pytest.raises(ValueError):
            RouteFlowEditor(snapshot_store=42)


class TestOpenRoute:
    """Tests for opening and switching routes."""

    @pytest.fixture
    def editor(self, registry: EntityRegistry) -> RouteFlowEditor:
        return RouteFlowEditor(registry=registry)

    @pytest.mark.asyncio
    async def test_open_sets_current_route(self, editor: RouteFlowEditor):
        session = await editor.open_route("r1")
        assert editor.active_session is session
        assert editor.registry.current_route.id == "r1"

    @pytest.mark.asyncio
    async def test_open_unknown_route(self, editor: RouteFlowEditor):
        with pytest.raises(RouteNotFoundError):
            await editor.open_route("missing")
        assert editor.active_session is None

    @pytest.mark.asyncio
    async def test_switching_routes_backs_out(self, editor: RouteFlowEditor):
        first = await editor.open_route("r1")
        await first.add_node(Node.create("logic", node_id="n2"))

        second = await editor.open_route("r2")
        assert not first.is_open
        assert second.route_id == "r2"
        assert second.dirty is False

        # the switch mirrored r1 but r2 has not written over the slot yet
        reopened = await editor.open_route("r1")
        assert reopened.dirty is True
        assert reopened.graph.node_exists("n2")

    @pytest.mark.asyncio
    async def test_on_close_callback(self, editor: RouteFlowEditor):
        closed = []
        session = await editor.open_route("r1", on_close=lambda: closed.append("r1"))
        await session.back()
        assert closed == ["r1"]

    @pytest.mark.asyncio
    async def test_recovery_survives_restart(self, tmp_path: Path):
        def make_editor() -> RouteFlowEditor:
            registry = EntityRegistry(routes=[Route(id="r1", url="/x")])
            return RouteFlowEditor(registry=registry, snapshot_path=tmp_path)

        session = await make_editor().open_route("r1")
        await session.add_node(Node.create("output", node_id="out"))

        restored = await make_editor().open_route("r1")
        assert restored.recovered is True
        assert restored.graph.node_exists("out")

    @pytest.mark.asyncio
    async def test_operation_log_path(self, registry: EntityRegistry, tmp_path: Path):
        log_path = tmp_path / "ops.jsonl"
        editor = RouteFlowEditor(registry=registry, operation_log_path=log_path)
        session = await editor.open_route("r1")
        await session.back()
        assert len(log_path.read_text().splitlines()) == 2
