"""
Edit session controller for a single route's flow.

An EditSession ties together the GraphStore being edited, the
EntityRegistry that owns the committed flow, and the RecoveryManager that
mirrors unsaved work. It tracks whether the flow is dirty, gates saving,
and snapshots the flow on back-navigation.

Errors never escape a session operation: refused or failed operations are
logged and recorded in the session's OperationLog instead.
"""

import logging
from enum import Enum
from typing import Any, Callable, Iterable, Optional

from pydantic import BaseModel, ValidationError

from .capture import CaptureToken, ConnectionDrag, NodeDrag, PointerCapture
from .exceptions import FlowEditorError, RouteNotFoundError, SnapshotError
from .graph_store import GraphStore
from .models import (
    Edge,
    EdgeChange,
    FlowData,
    Node,
    NodeChange,
    NodeType,
    Position,
    Route,
    parse_edge_changes,
    parse_node_changes,
)
from .operations import Operation, OperationLog
from .recovery import RecoveryManager
from .registry import EntityRegistry

logger = logging.getLogger(__name__)

DEFAULT_NODE_POSITION = Position(x=100, y=100)


class SessionState(str, Enum):
    """Whether the session holds unsaved changes."""

    CLEAN = "clean"
    DIRTY = "dirty"


class EditSession:
    """
    Editing context for one route.

    Lifecycle:
    - ``open`` recovers a matching transient snapshot (session starts dirty),
      or loads the route's committed flow, or seeds a single url node
      (session starts clean)
    - every effective mutation marks the session dirty and mirrors the
      graph to the transient slot
    - ``save`` commits a dirty flow to the route, clears the slot and ends
      the session; saving a clean session does nothing
    - ``back`` ends the session without saving; the mirrored slot is kept
    """

    def __init__(
        self,
        route: Route,
        registry: EntityRegistry,
        recovery: RecoveryManager,
        graph: GraphStore | None = None,
        on_close: Optional[Callable[[], None]] = None,
        operation_log: OperationLog | None = None,
        default_position: Position = DEFAULT_NODE_POSITION,
    ):
        """
        Initialize a session. Use ``EditSession.open`` to also load the graph.

        Args:
            route: Route whose flow is edited
            registry: Registry the flow is committed to
            recovery: Mirror/recall bridge to the transient slot
            graph: Store to edit (default: a new empty GraphStore)
            on_close: Called after save or back
            operation_log: Where operations are recorded (default: in-memory)
            default_position: Where the seeded url node is placed
        """
        self.route = route
        self.registry = registry
        self.recovery = recovery
        self.graph = graph if graph is not None else GraphStore()
        self.on_close = on_close
        self.operations = operation_log if operation_log is not None else OperationLog()
        self.default_position = default_position
        self.capture = PointerCapture()
        self.recovered = False
        self._dirty = False
        self._closed = False

    @classmethod
    async def open(
        cls,
        route: Route,
        registry: EntityRegistry,
        recovery: RecoveryManager,
        **kwargs: Any,
    ) -> "EditSession":
        """Create a session and populate its graph."""
        session = cls(route, registry, recovery, **kwargs)
        await session._initialize()
        return session

    def __repr__(self) -> str:
        return (
            f"EditSession(route='{self.route.id}', state={self.state.value}, "
            f"open={self.is_open}, {self.graph!r})"
        )

    # ==================== Properties ====================

    @property
    def route_id(self) -> str:
        return self.route.id

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def state(self) -> SessionState:
        return SessionState.DIRTY if self._dirty else SessionState.CLEAN

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def can_save(self) -> bool:
        return self.is_open and self._dirty

    def snapshot(self) -> FlowData:
        return self.graph.snapshot()

    def to_dict(self) -> dict[str, Any]:
        """Session view for the canvas."""
        return {
            "routeId": self.route.id,
            "state": self.state.value,
            "dirty": self._dirty,
            "open": self.is_open,
            "recovered": self.recovered,
            "selectedNodeId": self.graph.selected_id,
            "nodes": [node.to_dict() for node in self.graph.nodes],
            "edges": [edge.to_dict() for edge in self.graph.edges],
        }

    # ==================== Lifecycle ====================

    def _default_url_node(self) -> Node:
        return Node.create(
            NodeType.URL,
            position=self.default_position,
            label="URL",
            path=self.route.url,
            method=self.route.method,
        )

    async def _initialize(self) -> None:
        snapshot = await self.recovery.recall(self.route.id)
        if snapshot is not None:
            self.graph.load(snapshot.nodes, snapshot.edges)
            self._dirty = True
            self.recovered = True
            source = "recovered snapshot"
        elif self.route.flow_data is not None:
            self.graph.load(self.route.flow_data.nodes, self.route.flow_data.edges)
            source = "committed flow"
        else:
            self.graph.load([self._default_url_node()], [])
            source = "default url node"

        logger.info(
            f"Opened session for route '{self.route.id}' from {source} "
            f"({self.graph.node_count} nodes, {self.graph.edge_count} edges)"
        )
        await self._record("open", success=True, data={"source": source})

    async def save(self) -> bool:
        """
        Commit the flow to the route and end the session.

        Only ``flow_data`` is replaced; the other route fields come from the
        registry's current copy.

        Returns:
            True if the flow was committed; False if the session was clean
            or already closed
        """
        if await self._refuse_if_closed("save"):
            return False
        if not self._dirty:
            logger.info(f"Nothing to save for route '{self.route.id}'")
            await self._record("save", success=False, error="No unsaved changes")
            return False

        try:
            current = self.registry.get_route(self.route.id)
        except RouteNotFoundError:
            current = self.route
        committed = current.model_copy(update={"flow_data": self.graph.snapshot()})
        self.registry.update_route(committed)
        self.route = committed
        self._dirty = False

        try:
            await self.recovery.clear()
        except SnapshotError as e:
            logger.error(f"Saved route '{self.route.id}' but could not clear snapshot slot: {e}")
            await self._record("clear_snapshot", success=False, error=str(e))

        logger.info(
            f"Saved flow for route '{self.route.id}' "
            f"({self.graph.node_count} nodes, {self.graph.edge_count} edges)"
        )
        await self._record("save", success=True)
        self._close()
        return True

    async def back(self) -> None:
        """End the session without saving; unsaved work stays recoverable."""
        if await self._refuse_if_closed("back"):
            return
        if self._dirty:
            await self._mirror()
            logger.info(f"Left route '{self.route.id}' with unsaved changes")
        await self._record("back", success=True, data={"dirty": self._dirty})
        self._close()

    def _close(self) -> None:
        self.capture.release_all()
        self._closed = True
        if self.on_close is not None:
            self.on_close()

    # ==================== Node Operations ====================

    async def add_node(self, node: Node) -> Node | None:
        """
        Append a node.

        Returns:
            The node, or None if its id collides with an existing node
        """
        if await self._refuse_if_closed("add_node", node_id=node.id):
            return None
        try:
            self.graph.add_node(node)
        except FlowEditorError as e:
            await self._record("add_node", success=False, error=str(e), node_id=node.id)
            return None
        await self._mutated()
        await self._record("add_node", success=True, node_id=node.id)
        return node

    async def drop_node(
        self,
        node_type: NodeType | str,
        position: Position | dict[str, float],
    ) -> Node | None:
        """
        Add a node dropped from the component palette.

        The node gets a generated id and a label derived from its type.

        Returns:
            The new node, or None if ``node_type`` is not a known type
        """
        if await self._refuse_if_closed("drop_node"):
            return None
        try:
            node = Node.create(node_type, position=position)
        except (ValidationError, ValueError) as e:
            await self._record(
                "drop_node", success=False, error=str(e), data={"type": str(node_type)}
            )
            return None
        return await self.add_node(node)

    async def update_node_data(self, node_id: str, patch: dict[str, Any]) -> Node | None:
        """
        Merge ``patch`` into a node's data.

        Returns:
            The updated node; None if the node is gone (ignored) or the
            patch does not fit the node's type (recorded as a failure)
        """
        if await self._refuse_if_closed("update_node_data", node_id=node_id):
            return None
        try:
            updated = self.graph.update_node_data(node_id, patch)
        except FlowEditorError as e:
            await self._record("update_node_data", success=False, error=str(e), node_id=node_id)
            return None
        if updated is None:
            await self._record(
                "update_node_data", success=True, node_id=node_id, data={"ignored": True}
            )
            return None
        await self._mutated()
        await self._record("update_node_data", success=True, node_id=node_id)
        return updated

    async def move_node(self, node_id: str, position: Position) -> Node | None:
        if await self._refuse_if_closed("move_node", node_id=node_id):
            return None
        moved = self.graph.set_node_position(node_id, position)
        if moved is not None:
            await self._mutated()
        return moved

    async def remove_node(self, node_id: str) -> bool:
        """Remove a node and its edges; removing a missing node does nothing."""
        if await self._refuse_if_closed("remove_node", node_id=node_id):
            return False
        removed = self.graph.remove_node(node_id)
        if removed:
            await self._mutated()
        await self._record("remove_node", success=True, node_id=node_id, data={"removed": removed})
        return removed

    def select(self, node_id: str | None) -> None:
        self.graph.select(node_id)

    def deselect(self) -> None:
        self.graph.select(None)

    # ==================== Edge Operations ====================

    async def connect(
        self,
        source_id: str,
        target_id: str,
        source_handle: str | None = None,
        target_handle: str | None = None,
    ) -> Edge | None:
        """
        Connect two nodes.

        Returns:
            The new edge, or None if an endpoint is missing or both
            endpoints are the same node
        """
        if await self._refuse_if_closed("connect"):
            return None
        edge = self.graph.connect(source_id, target_id, source_handle, target_handle)
        if edge is None:
            await self._record(
                "connect",
                success=False,
                error="Both endpoints must exist and differ",
                data={"source": source_id, "target": target_id},
            )
            return None
        await self._mutated()
        await self._record("connect", success=True, edge_id=edge.id)
        return edge

    async def remove_edge(self, edge_id: str) -> bool:
        if await self._refuse_if_closed("remove_edge", edge_id=edge_id):
            return False
        removed = self.graph.remove_edge(edge_id)
        if removed:
            await self._mutated()
        await self._record("remove_edge", success=True, edge_id=edge_id, data={"removed": removed})
        return removed

    # ==================== Canvas Changes ====================

    async def apply_node_changes(
        self, changes: Iterable[NodeChange | dict[str, Any]]
    ) -> bool:
        """
        Apply a canvas node patch list atomically.

        Returns:
            True if the graph changed; False if nothing changed or the list
            was rejected (in which case the graph is left as it was)
        """
        return await self._apply_changes(
            "apply_node_changes",
            [(changes, parse_node_changes, self.graph.apply_node_changes)],
        )

    async def apply_edge_changes(
        self, changes: Iterable[EdgeChange | dict[str, Any]]
    ) -> bool:
        """Apply a canvas edge patch list atomically; see ``apply_node_changes``."""
        return await self._apply_changes(
            "apply_edge_changes",
            [(changes, parse_edge_changes, self.graph.apply_edge_changes)],
        )

    async def apply_changes(
        self,
        node_changes: Iterable[NodeChange | dict[str, Any]] = (),
        edge_changes: Iterable[EdgeChange | dict[str, Any]] = (),
    ) -> bool:
        """
        Apply a node list and then an edge list as one atomic step.

        If either list is rejected, neither is applied.

        Returns:
            True if the graph changed
        """
        return await self._apply_changes(
            "apply_changes",
            [
                (node_changes, parse_node_changes, self.graph.apply_node_changes),
                (edge_changes, parse_edge_changes, self.graph.apply_edge_changes),
            ],
        )

    async def _apply_changes(
        self,
        operation_type: str,
        batches: list[tuple[Iterable[Any], Callable, Callable]],
    ) -> bool:
        if await self._refuse_if_closed(operation_type):
            return False
        previous_nodes = self.graph.nodes
        previous_edges = self.graph.edges
        previous_selection = self.graph.selected_id
        mutated = False
        count = 0
        try:
            for changes, parse, apply in batches:
                changes = list(changes)
                if not all(isinstance(c, BaseModel) for c in changes):
                    changes = parse(
                        [c.model_dump(by_alias=True) if isinstance(c, BaseModel) else c for c in changes]
                    )
                mutated = apply(changes) or mutated
                count += len(changes)
        except (ValidationError, FlowEditorError) as e:
            self.graph.load(previous_nodes, previous_edges)
            self.graph.select(previous_selection)
            await self._record(operation_type, success=False, error=str(e))
            return False
        if mutated:
            await self._mutated()
        await self._record(
            operation_type, success=True, data={"changes": count, "mutated": mutated}
        )
        return mutated

    # ==================== Pointer Capture ====================

    def begin_node_drag(self, node_id: str) -> CaptureToken | None:
        """Capture the pointer for dragging a node; None if the node is missing."""
        if not self.is_open or not self.graph.node_exists(node_id):
            return None
        return self.capture.acquire(NodeDrag(self, node_id))

    def begin_connection_drag(
        self, source_id: str, source_handle: str | None = None
    ) -> CaptureToken | None:
        """Capture the pointer for drawing a connection out of ``source_id``."""
        if not self.is_open or not self.graph.node_exists(source_id):
            return None
        return self.capture.acquire(ConnectionDrag(self, source_id, source_handle))

    # ==================== Internals ====================

    async def _mutated(self) -> None:
        self._dirty = True
        await self._mirror()

    async def _mirror(self) -> None:
        try:
            await self.recovery.mirror(self.route.id, self.graph.nodes, self.graph.edges)
        except SnapshotError as e:
            logger.error(f"Could not mirror unsaved flow for route '{self.route.id}': {e}")
            await self._record("mirror", success=False, error=str(e))

    async def _refuse_if_closed(self, operation_type: str, **fields: Any) -> bool:
        if not self._closed:
            return False
        await self._record(
            operation_type, success=False, error="Edit session is closed", **fields
        )
        return True

    async def _record(
        self,
        operation_type: str,
        success: bool,
        error: str | None = None,
        **fields: Any,
    ) -> None:
        operation = Operation(
            operation_type=operation_type,
            route_id=self.route.id,
            success=success,
            error=error,
            **fields,
        )
        if not success:
            logger.warning(
                f"{operation_type} refused for route '{self.route.id}': {error}"
            )
        await self.operations.append(operation)
