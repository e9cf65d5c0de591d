"""
Exceptions for route-flow-editor package.

Defines all custom exceptions used throughout the package.
"""


class FlowEditorError(Exception):
    """Base exception for flow editor errors."""

    pass


class NodeNotFoundError(FlowEditorError):
    """Raised when a node is not found in the graph."""

    pass


class DuplicateNodeError(FlowEditorError):
    """Raised when attempting to add a node with an existing ID."""

    pass


class DuplicateEdgeError(FlowEditorError):
    """Raised when attempting to store two edges with the same ID."""

    pass


class InvalidNodeDataError(FlowEditorError):
    """Raised when a data patch does not fit the node's data variant."""

    pass


class InvariantViolationError(FlowEditorError):
    """Raised when the graph would hold an edge with a missing endpoint."""

    pass


class RouteNotFoundError(FlowEditorError):
    """Raised when a route is not found in the registry."""

    pass


class CaptureError(FlowEditorError):
    """Raised when a pointer capture is used after release."""

    pass


class SnapshotError(FlowEditorError):
    """Base exception for transient snapshot operations."""

    pass


class SnapshotCorruptedError(SnapshotError):
    """Raised when the transient slot holds undecodable or invalid data."""

    pass


class SnapshotVersionError(SnapshotError):
    """Raised when the transient slot was written by an unsupported format version."""

    pass
