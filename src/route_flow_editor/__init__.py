"""
route-flow-editor: state and persistence layer for a graph-based route flow editor.

This package keeps the node/edge graph of a route's request-handling flow,
tracks unsaved changes, commits flows to their routes, and mirrors unsaved
work into a transient slot so it can be recovered after a crash or after
navigating away.
"""

from route_flow_editor.backends import (
    FilesystemSnapshotStore,
    MemorySnapshotStore,
    SnapshotStore,
)
from route_flow_editor.capture import CaptureToken, PointerCapture
from route_flow_editor.editor import RouteFlowEditor
from route_flow_editor.exceptions import (
    CaptureError,
    DuplicateEdgeError,
    DuplicateNodeError,
    FlowEditorError,
    InvalidNodeDataError,
    InvariantViolationError,
    NodeNotFoundError,
    RouteNotFoundError,
    SnapshotCorruptedError,
    SnapshotError,
    SnapshotVersionError,
)
from route_flow_editor.graph_store import GraphStore
from route_flow_editor.models import (
    Edge,
    FlowData,
    ModelDefinition,
    ModelField,
    Node,
    NodeData,
    NodeType,
    Position,
    Role,
    RolePermissions,
    Route,
    Settings,
    TransientSnapshot,
)
from route_flow_editor.operations import Operation, OperationLog
from route_flow_editor.recovery import RecoveryManager
from route_flow_editor.registry import EntityRegistry
from route_flow_editor.session import EditSession, SessionState

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Core classes
    "RouteFlowEditor",
    "EditSession",
    "SessionState",
    "GraphStore",
    "EntityRegistry",
    "RecoveryManager",
    # Pointer capture
    "PointerCapture",
    "CaptureToken",
    # Snapshot stores
    "SnapshotStore",
    "MemorySnapshotStore",
    "FilesystemSnapshotStore",
    # Data models
    "Node",
    "NodeData",
    "NodeType",
    "Position",
    "Edge",
    "FlowData",
    "TransientSnapshot",
    "Route",
    "ModelDefinition",
    "ModelField",
    "Role",
    "RolePermissions",
    "Settings",
    # Diagnostics
    "Operation",
    "OperationLog",
    # Exceptions
    "FlowEditorError",
    "NodeNotFoundError",
    "DuplicateNodeError",
    "DuplicateEdgeError",
    "InvalidNodeDataError",
    "InvariantViolationError",
    "RouteNotFoundError",
    "CaptureError",
    "SnapshotError",
    "SnapshotCorruptedError",
    "SnapshotVersionError",
]
