"""
Transient snapshot store interfaces and implementations for route-flow-editor.

This module provides an abstraction over the single-slot storage used for
crash and navigation recovery, allowing callers to choose between a
process-lifetime in-memory slot and a file-backed slot that survives restarts.
"""

from .base import SnapshotStore
from .filesystem import FilesystemSnapshotStore
from .memory import MemorySnapshotStore

__all__ = ["SnapshotStore", "FilesystemSnapshotStore", "MemorySnapshotStore"]
