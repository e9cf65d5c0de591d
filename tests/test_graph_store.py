"""
Tests for GraphStore mutations and graph invariants.
"""

import random

import pytest

from route_flow_editor.exceptions import (
    DuplicateEdgeError,
    DuplicateNodeError,
    InvalidNodeDataError,
    InvariantViolationError,
    NodeNotFoundError,
)
from route_flow_editor.graph_store import GraphStore
from route_flow_editor.models import (
    Edge,
    EdgeAddChange,
    EdgeRemoveChange,
    Node,
    NodeAddChange,
    NodePositionChange,
    NodeRemoveChange,
    NodeSelectChange,
    Position,
)


def make_node(node_id: str, node_type: str = "logic") -> Node:
    return Node.create(node_type, node_id=node_id)


def assert_no_dangling_edges(store: GraphStore) -> None:
    node_ids = {node.id for node in store.nodes}
    for edge in store.edges:
        assert edge.source in node_ids
        assert edge.target in node_ids


@pytest.fixture
def store() -> GraphStore:
    """Store with a -> b -> c and a -> c."""
    graph = GraphStore()
    for node_id in ("a", "b", "c"):
        graph.add_node(make_node(node_id))
    graph.connect("a", "b")
    graph.connect("b", "c")
    graph.connect("a", "c")
    return graph


class TestGraphStoreInitialization:
    """Tests for construction and loading."""

    def test_empty_store(self):
        graph = GraphStore()
        assert graph.node_count == 0
        assert graph.edge_count == 0
        assert graph.selected_node is None
        assert "GraphStore" in repr(graph)

    def test_construct_with_graph(self):
        nodes = [make_node("a"), make_node("b")]
        edges = [Edge(id="e1", source="a", target="b")]
        graph = GraphStore(nodes, edges)
        assert graph.node_count == 2
        assert graph.edges[0].id == "e1"

    def test_load_rejects_dangling_edge(self):
        graph = GraphStore()
        with pytest.raises(InvariantViolationError):
            graph.load([make_node("a")], [Edge(source="a", target="ghost")])
        assert graph.node_count == 0

    def test_load_rejects_duplicate_node_ids(self):
        with pytest.raises(DuplicateNodeError):
            GraphStore([make_node("a"), make_node("a")])

    def test_load_clears_selection(self, store: GraphStore):
        store.select("a")
        store.load([make_node("x")], [])
        assert store.selected_id is None


class TestAddNode:
    """Tests for add_node."""

    def test_appends_in_order(self, store: GraphStore):
        store.add_node(make_node("d"))
        assert [n.id for n in store.nodes] == ["a", "b", "c", "d"]

    def test_collision_raises_and_does_not_overwrite(self, store: GraphStore):
        original = store.get_node("a")
        with pytest.raises(DuplicateNodeError):
            store.add_node(make_node("a", "output"))
        assert store.get_node("a") is original
        assert store.node_count == 3


class TestUpdateNodeData:
    """Tests for update_node_data."""

    def test_merges_patch(self, store: GraphStore):
        updated = store.update_node_data("a", {"condition": "x > 1"})
        assert updated.data.condition == "x > 1"
        assert store.get_node("a").data.condition == "x > 1"
        assert store.get_node("a").data.label == "Logic"

    def test_missing_node_is_ignored(self, store: GraphStore):
        nodes_before = store.nodes
        edges_before = store.edges
        assert store.update_node_data("ghost", {"condition": "x"}) is None
        assert store.nodes == nodes_before
        assert store.edges == edges_before

    def test_untouched_nodes_keep_identity(self, store: GraphStore):
        b_before = store.get_node("b")
        c_before = store.get_node("c")
        store.update_node_data("a", {"label": "Renamed"})
        assert store.get_node("b") is b_before
        assert store.get_node("c") is c_before

    def test_invalid_patch_leaves_node_unchanged(self):
        graph = GraphStore([make_node("o", "output")])
        before = graph.get_node("o")
        with pytest.raises(InvalidNodeDataError):
            graph.update_node_data("o", {"status_code": "bad"})
        assert graph.get_node("o") is before


class TestRemoveNode:
    """Tests for remove_node and cascading deletes."""

    def test_cascades_incident_edges(self, store: GraphStore):
        assert store.remove_node("b") is True
        assert [n.id for n in store.nodes] == ["a", "c"]
        assert [(e.source, e.target) for e in store.edges] == [("a", "c")]

    def test_is_idempotent(self, store: GraphStore):
        store.remove_node("a")
        nodes_once = store.nodes
        edges_once = store.edges
        assert store.remove_node("a") is False
        assert store.nodes == nodes_once
        assert store.edges == edges_once

    def test_resets_selection(self, store: GraphStore):
        store.select("c")
        store.remove_node("c")
        assert store.selected_id is None
        assert store.selected_node is None

    def test_keeps_other_selection(self, store: GraphStore):
        store.select("a")
        store.remove_node("c")
        assert store.selected_node.id == "a"

    def test_random_sequences_never_leave_dangling_edges(self):
        rng = random.Random(42)
        graph = GraphStore()
        for step in range(300):
            ids = [n.id for n in graph.nodes]
            action = rng.choice(["add", "add", "remove", "connect", "connect"])
            if action == "add":
                graph.add_node(make_node(f"n{step}"))
            elif action == "remove" and ids:
                graph.remove_node(rng.choice(ids))
            elif action == "connect" and len(ids) >= 2:
                graph.connect(*rng.sample(ids, 2))
            assert_no_dangling_edges(graph)
        graph.check_invariants()


class TestConnect:
    """Tests for connect and remove_edge."""

    def test_duplicate_connections_get_distinct_ids(self):
        graph = GraphStore([make_node("a"), make_node("b")])
        first = graph.connect("a", "b")
        second = graph.connect("a", "b")
        assert first is not None and second is not None
        assert first.id != second.id
        assert graph.edge_count == 2

    def test_missing_endpoint_refused(self, store: GraphStore):
        assert store.connect("a", "ghost") is None
        assert store.connect("ghost", "a") is None
        assert store.edge_count == 3

    def test_self_connection_refused(self, store: GraphStore):
        assert store.connect("a", "a") is None

    def test_handles_are_kept(self, store: GraphStore):
        edge = store.connect("c", "a", source_handle="out", target_handle="in")
        assert edge.source_handle == "out"
        assert edge.target_handle == "in"

    def test_remove_edge(self, store: GraphStore):
        edge_id = store.edges[0].id
        assert store.remove_edge(edge_id) is True
        assert store.remove_edge(edge_id) is False
        assert store.edge_count == 2

    def test_edges_for(self, store: GraphStore):
        assert len(store.edges_for("a")) == 2
        assert len(store.edges_for("b")) == 2


class TestWholesaleReplacement:
    """Tests for set_nodes / set_edges."""

    def test_set_nodes_with_list(self, store: GraphStore):
        store.set_nodes([make_node("x")])
        assert [n.id for n in store.nodes] == ["x"]
        assert store.edge_count == 0

    def test_set_nodes_updater_keeps_identity(self, store: GraphStore):
        a_before = store.get_node("a")
        store.set_nodes(
            lambda nodes: [n.with_position(Position(x=9, y=9)) if n.id == "b" else n for n in nodes]
        )
        assert store.get_node("a") is a_before
        assert store.get_node("b").position.x == 9
        assert store.edge_count == 3

    def test_set_nodes_drops_orphaned_edges(self, store: GraphStore):
        store.select("b")
        store.set_nodes(lambda nodes: [n for n in nodes if n.id != "b"])
        assert_no_dangling_edges(store)
        assert store.edge_count == 1
        assert store.selected_id is None

    def test_set_nodes_rejects_duplicates(self, store: GraphStore):
        with pytest.raises(DuplicateNodeError):
            store.set_nodes(lambda nodes: [*nodes, make_node("a")])
        assert store.node_count == 3

    def test_set_edges_updater(self, store: GraphStore):
        store.set_edges(lambda edges: [e for e in edges if e.source != "a"])
        assert [(e.source, e.target) for e in store.edges] == [("b", "c")]

    def test_set_edges_rejects_dangling(self, store: GraphStore):
        with pytest.raises(InvariantViolationError):
            store.set_edges(lambda edges: [*edges, Edge(source="a", target="ghost")])
        assert store.edge_count == 3

    def test_set_edges_rejects_duplicate_ids(self, store: GraphStore):
        with pytest.raises(DuplicateEdgeError):
            store.set_edges(lambda edges: [*edges, edges[0]])


class TestSelection:
    """Tests for the selected-node reference."""

    def test_select_always_succeeds(self, store: GraphStore):
        store.select("ghost")
        assert store.selected_id == "ghost"
        assert store.selected_node is None

    def test_deselect(self, store: GraphStore):
        store.select("a")
        store.select(None)
        assert store.selected_node is None

    def test_get_node_missing_raises(self, store: GraphStore):
        with pytest.raises(NodeNotFoundError):
            store.get_node("ghost")


class TestCanvasChanges:
    """Tests for apply_node_changes / apply_edge_changes."""

    def test_position_change(self, store: GraphStore):
        mutated = store.apply_node_changes(
            [NodePositionChange(id="a", position=Position(x=50, y=60))]
        )
        assert mutated is True
        assert store.get_node("a").position == Position(x=50, y=60)

    def test_position_change_without_position_is_ignored(self, store: GraphStore):
        assert store.apply_node_changes([NodePositionChange(id="a", dragging=True)]) is False

    def test_remove_change_cascades(self, store: GraphStore):
        assert store.apply_node_changes([NodeRemoveChange(id="a")]) is True
        assert_no_dangling_edges(store)
        assert store.edge_count == 1

    def test_add_change(self, store: GraphStore):
        store.apply_node_changes([NodeAddChange(item=make_node("d"))])
        assert store.node_exists("d")

    def test_select_change_does_not_mutate(self, store: GraphStore):
        assert store.apply_node_changes([NodeSelectChange(id="b", selected=True)]) is False
        assert store.selected_id == "b"
        store.apply_node_changes([NodeSelectChange(id="b", selected=False)])
        assert store.selected_id is None

    def test_edge_changes(self, store: GraphStore):
        first = store.edges[0].id
        mutated = store.apply_edge_changes(
            [
                EdgeRemoveChange(id=first),
                EdgeAddChange(item=Edge(id="e-new", source="c", target="a")),
            ]
        )
        assert mutated is True
        assert first not in {e.id for e in store.edges}
        assert store.edges[-1].id == "e-new"

    def test_edge_add_change_with_missing_node(self, store: GraphStore):
        with pytest.raises(InvariantViolationError):
            store.apply_edge_changes([EdgeAddChange(item=Edge(source="a", target="zz"))])


class TestSnapshot:
    """Tests for snapshot()."""

    def test_snapshot_is_a_copy(self, store: GraphStore):
        flow = store.snapshot()
        store.remove_node("a")
        assert len(flow.nodes) == 3
        assert len(flow.edges) == 3
