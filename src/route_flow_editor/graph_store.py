"""
In-memory node/edge store for a single flow being edited.

The GraphStore owns the canonical node and edge collections plus the
selected-node reference. All mutations are synchronous and keep the graph
free of dangling edges: removing a node always removes its incident edges.
"""

import logging
from typing import Any, Callable, Iterable, Union

from .exceptions import (
    DuplicateEdgeError,
    DuplicateNodeError,
    InvariantViolationError,
    NodeNotFoundError,
)
from .models import (
    Edge,
    EdgeAddChange,
    EdgeChange,
    EdgeRemoveChange,
    FlowData,
    Node,
    NodeAddChange,
    NodeChange,
    NodePositionChange,
    NodeRemoveChange,
    Position,
)

logger = logging.getLogger(__name__)

NodesUpdate = Union[Iterable[Node], Callable[[list[Node]], Iterable[Node]]]
EdgesUpdate = Union[Iterable[Edge], Callable[[list[Edge]], Iterable[Edge]]]


class GraphStore:
    """
    Canonical node/edge collections for one editing session.

    This class handles:
    - Wholesale and updater-style replacement of nodes and edges
    - Single-element mutations (add, update data, move, remove, connect)
    - Application of canvas change lists
    - The selected-node weak reference

    Node order is render order only. Nodes and edges are immutable values;
    every mutation swaps in new objects for the touched elements and leaves
    the others as the same objects.
    """

    def __init__(self, nodes: Iterable[Node] = (), edges: Iterable[Edge] = ()):
        self._nodes: list[Node] = []
        self._edges: list[Edge] = []
        self._selected_id: str | None = None
        self.load(nodes, edges)

    def __repr__(self) -> str:
        """Return string representation of the store."""
        return f"GraphStore(nodes={len(self._nodes)}, edges={len(self._edges)})"

    # ==================== Properties ====================

    @property
    def nodes(self) -> tuple[Node, ...]:
        return tuple(self._nodes)

    @property
    def edges(self) -> tuple[Edge, ...]:
        return tuple(self._edges)

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    @property
    def selected_id(self) -> str | None:
        return self._selected_id

    @property
    def selected_node(self) -> Node | None:
        """Resolve the selection; ``None`` if nothing (or nothing live) is selected."""
        if self._selected_id is None:
            return None
        return self._find_node(self._selected_id)

    # ==================== Lookup ====================

    def _find_node(self, node_id: str) -> Node | None:
        for node in self._nodes:
            if node.id == node_id:
                return node
        return None

    def _node_index(self, node_id: str) -> int | None:
        for index, node in enumerate(self._nodes):
            if node.id == node_id:
                return index
        return None

    def node_exists(self, node_id: str) -> bool:
        return self._node_index(node_id) is not None

    def get_node(self, node_id: str) -> Node:
        """
        Get a node by ID.

        Raises:
            NodeNotFoundError: If node doesn't exist
        """
        node = self._find_node(node_id)
        if node is None:
            raise NodeNotFoundError(f"Node '{node_id}' not found in graph")
        return node

    def edges_for(self, node_id: str) -> list[Edge]:
        """Edges incident to ``node_id`` (either direction)."""
        return [e for e in self._edges if e.source == node_id or e.target == node_id]

    # ==================== Wholesale Replacement ====================

    def set_nodes(self, update: NodesUpdate) -> None:
        """
        Replace the node collection.

        Args:
            update: New nodes, or a function from the current node list to
                the new one. The function receives a copy and may return the
                same Node objects to keep them untouched.

        Raises:
            DuplicateNodeError: If the new collection repeats an id

        Edges left without an endpoint are dropped and a selection pointing
        at a vanished node is cleared.
        """
        if callable(update):
            update = update(list(self._nodes))
        new_nodes = list(update)
        self._check_unique_node_ids(new_nodes)

        self._nodes = new_nodes
        live_ids = {node.id for node in new_nodes}
        kept = [e for e in self._edges if e.source in live_ids and e.target in live_ids]
        if len(kept) != len(self._edges):
            logger.debug(f"Dropped {len(self._edges) - len(kept)} edge(s) left without an endpoint")
            self._edges = kept
        if self._selected_id is not None and self._selected_id not in live_ids:
            self._selected_id = None

    def set_edges(self, update: EdgesUpdate) -> None:
        """
        Replace the edge collection.

        Args:
            update: New edges, or a function from the current edge list to
                the new one.

        Raises:
            DuplicateEdgeError: If the new collection repeats an id
            InvariantViolationError: If an edge references a missing node
        """
        if callable(update):
            update = update(list(self._edges))
        new_edges = list(update)
        self._check_edges(new_edges, {node.id for node in self._nodes})
        self._edges = new_edges

    def load(self, nodes: Iterable[Node], edges: Iterable[Edge]) -> None:
        """
        Replace the whole graph and clear the selection.

        Raises:
            DuplicateNodeError: If node ids repeat
            DuplicateEdgeError: If edge ids repeat
            InvariantViolationError: If an edge references a missing node
        """
        new_nodes = list(nodes)
        new_edges = list(edges)
        self._check_unique_node_ids(new_nodes)
        self._check_edges(new_edges, {node.id for node in new_nodes})
        self._nodes = new_nodes
        self._edges = new_edges
        self._selected_id = None

    def snapshot(self) -> FlowData:
        """Copy the current graph into a FlowData value."""
        return FlowData(nodes=list(self._nodes), edges=list(self._edges))

    # ==================== Node Operations ====================

    def add_node(self, node: Node) -> Node:
        """
        Append a node.

        Raises:
            DuplicateNodeError: If a node with this ID already exists
        """
        if self.node_exists(node.id):
            raise DuplicateNodeError(f"Node with ID '{node.id}' already exists")
        self._nodes.append(node)
        logger.debug(f"Added {node.type.value} node '{node.id}'")
        return node

    def update_node_data(self, node_id: str, patch: dict[str, Any]) -> Node | None:
        """
        Shallow-merge ``patch`` into a node's data.

        Updates to a missing node are ignored, since form callbacks can race
        with deletions.

        Returns:
            The replacement Node, or None if ``node_id`` is absent

        Raises:
            InvalidNodeDataError: If the patch violates the node's data variant
        """
        index = self._node_index(node_id)
        if index is None:
            logger.debug(f"Ignoring data update for missing node '{node_id}'")
            return None
        updated = self._nodes[index].with_data(patch)
        self._nodes[index] = updated
        return updated

    def set_node_position(self, node_id: str, position: Position) -> Node | None:
        """Move a node; ignored (returns None) if the node is absent."""
        index = self._node_index(node_id)
        if index is None:
            return None
        updated = self._nodes[index].with_position(position)
        self._nodes[index] = updated
        return updated

    def remove_node(self, node_id: str) -> bool:
        """
        Remove a node and every edge touching it.

        Returns:
            True if the node was present
        """
        index = self._node_index(node_id)
        if index is None:
            return False
        del self._nodes[index]
        incident = self.edges_for(node_id)
        if incident:
            self._edges = [e for e in self._edges if e.source != node_id and e.target != node_id]
        if self._selected_id == node_id:
            self._selected_id = None
        logger.debug(f"Removed node '{node_id}' and {len(incident)} incident edge(s)")
        return True

    def select(self, node_id: str | None) -> None:
        self._selected_id = node_id

    # ==================== Edge Operations ====================

    def connect(
        self,
        source_id: str,
        target_id: str,
        source_handle: str | None = None,
        target_handle: str | None = None,
    ) -> Edge | None:
        """
        Connect two existing, distinct nodes.

        Repeated connections between the same nodes each create a new edge.

        Returns:
            The created Edge, or None if an endpoint is missing or the
            endpoints are the same node
        """
        if source_id == target_id:
            logger.debug(f"Refusing self-connection on '{source_id}'")
            return None
        if not (self.node_exists(source_id) and self.node_exists(target_id)):
            logger.debug(f"Refusing connection '{source_id}' -> '{target_id}': missing endpoint")
            return None
        edge = Edge(
            source=source_id,
            target=target_id,
            source_handle=source_handle,
            target_handle=target_handle,
        )
        self._edges.append(edge)
        logger.debug(f"Connected '{source_id}' -> '{target_id}' as '{edge.id}'")
        return edge

    def remove_edge(self, edge_id: str) -> bool:
        """Remove an edge by id; returns False if it was already gone."""
        remaining = [e for e in self._edges if e.id != edge_id]
        if len(remaining) == len(self._edges):
            return False
        self._edges = remaining
        return True

    # ==================== Canvas Changes ====================

    def apply_node_changes(self, changes: Iterable[NodeChange]) -> bool:
        """
        Apply a canvas node patch list in order.

        Returns:
            True if any change altered nodes or edges (selection changes
            alone return False)

        Raises:
            DuplicateNodeError: If an ``add`` change collides with an existing id
        """
        mutated = False
        for change in changes:
            if isinstance(change, NodeAddChange):
                self.add_node(change.item)
                mutated = True
            elif isinstance(change, NodeRemoveChange):
                mutated = self.remove_node(change.id) or mutated
            elif isinstance(change, NodePositionChange):
                if change.position is not None:
                    moved = self.set_node_position(change.id, change.position)
                    mutated = moved is not None or mutated
            elif change.selected:
                self.select(change.id)
            elif self._selected_id == change.id:
                self.select(None)
        return mutated

    def apply_edge_changes(self, changes: Iterable[EdgeChange]) -> bool:
        """
        Apply a canvas edge patch list in order.

        Returns:
            True if any change altered the edge collection

        Raises:
            DuplicateEdgeError: If an ``add`` change repeats an edge id
            InvariantViolationError: If an ``add`` change references a missing node
        """
        mutated = False
        for change in changes:
            if isinstance(change, EdgeAddChange):
                self.set_edges(lambda edges: [*edges, change.item])
                mutated = True
            elif isinstance(change, EdgeRemoveChange):
                mutated = self.remove_edge(change.id) or mutated
        return mutated

    # ==================== Invariants ====================

    def check_invariants(self) -> None:
        """
        Verify ids are unique and no edge dangles.

        Raises:
            DuplicateNodeError / DuplicateEdgeError / InvariantViolationError
        """
        self._check_unique_node_ids(self._nodes)
        self._check_edges(self._edges, {node.id for node in self._nodes})

    @staticmethod
    def _check_unique_node_ids(nodes: list[Node]) -> None:
        seen: set[str] = set()
        for node in nodes:
            if node.id in seen:
                raise DuplicateNodeError(f"Node with ID '{node.id}' appears more than once")
            seen.add(node.id)

    @staticmethod
    def _check_edges(edges: list[Edge], node_ids: set[str]) -> None:
        seen: set[str] = set()
        for edge in edges:
            if edge.id in seen:
                raise DuplicateEdgeError(f"Edge with ID '{edge.id}' appears more than once")
            seen.add(edge.id)
            if edge.source not in node_ids or edge.target not in node_ids:
                raise InvariantViolationError(
                    f"Edge '{edge.id}' references a missing node "
                    f"('{edge.source}' -> '{edge.target}')"
                )
