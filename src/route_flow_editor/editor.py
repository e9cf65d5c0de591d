"""
Entry point wiring the registry, snapshot store and recovery manager.

RouteFlowEditor is constructed once with its configuration and opens one
EditSession per route. Collaborators are passed explicitly to each session;
nothing here is a module-level singleton.
"""

import logging
from pathlib import Path
from typing import Callable, Optional

from .backends import FilesystemSnapshotStore, MemorySnapshotStore, SnapshotStore
from .operations import OperationLog
from .recovery import DEFAULT_SLOT_KEY, RecoveryManager
from .registry import EntityRegistry
from .session import EditSession

logger = logging.getLogger(__name__)


class RouteFlowEditor:
    """
    Opens edit sessions for the routes of one registry.

    At most one session is active: opening a route while another session is
    still open ends the old one as a back navigation, which keeps its unsaved
    work recoverable.
    """

    def __init__(
        self,
        registry: EntityRegistry | None = None,
        snapshot_store: SnapshotStore | str | None = None,
        snapshot_path: Optional[Path | str] = None,
        slot_key: str = DEFAULT_SLOT_KEY,
        operation_log_path: Optional[Path | str] = None,
    ):
        """
        Initialize the editor.

        Args:
            registry: Entity registry (default: an empty registry)
            snapshot_store: Transient snapshot store. Can be:
                - A SnapshotStore instance
                - A string: "memory" or "filesystem"
                - None: uses MemorySnapshotStore, or FilesystemSnapshotStore
                  when ``snapshot_path`` is given
            snapshot_path: Directory for the filesystem store (only used with a
                string or None ``snapshot_store``)
            slot_key: Key of the single transient slot
            operation_log_path: Optional JSONL file receiving session operations

        Raises:
            ValueError: If snapshot_store string is invalid or if snapshot_path is
                provided with a SnapshotStore instance
            SnapshotError: If the store cannot hold a value under ``slot_key``
        """
        self.registry = registry if registry is not None else EntityRegistry()
        self.store = self._init_snapshot_store(snapshot_store, snapshot_path)
        self.recovery = RecoveryManager(self.store, slot_key=slot_key)
        self.operation_log_path = operation_log_path
        self.active_session: EditSession | None = None

        logger.debug(f"Created RouteFlowEditor with snapshot store {type(self.store).__name__}")

    def _init_snapshot_store(
        self,
        snapshot_store: SnapshotStore | str | None,
        snapshot_path: Optional[Path | str],
    ) -> SnapshotStore:
        """
        Initialize snapshot store from various input formats.

        Raises:
            ValueError: If invalid store type or conflicting parameters
        """
        if isinstance(snapshot_store, SnapshotStore):
            if snapshot_path is not None:
                raise ValueError(
                    "snapshot_path cannot be specified when snapshot_store is a "
                    "SnapshotStore instance. Use the store's constructor instead."
                )
            return snapshot_store

        if isinstance(snapshot_store, str):
            store_type = snapshot_store.lower()
            valid_stores = ["memory", "filesystem"]
            if store_type not in valid_stores:
                raise ValueError(
                    f"Invalid snapshot store: '{store_type}'. "
                    f"Valid options: {', '.join(valid_stores)}"
                )
            if store_type == "memory":
                if snapshot_path is not None:
                    raise ValueError("snapshot_path is only used with the filesystem store")
                return MemorySnapshotStore()
            return FilesystemSnapshotStore(base_dir=str(snapshot_path or "./.flow_snapshots"))

        if snapshot_store is None:
            if snapshot_path is not None:
                return FilesystemSnapshotStore(base_dir=str(snapshot_path))
            return MemorySnapshotStore()

        raise ValueError(
            f"snapshot_store must be a SnapshotStore instance, string, or None. "
            f"Got: {type(snapshot_store)}"
        )

    async def open_route(
        self,
        route_id: str,
        on_close: Optional[Callable[[], None]] = None,
    ) -> EditSession:
        """
        Start editing a route's flow.

        Args:
            route_id: Route to edit
            on_close: Called after the session saves or goes back

        Returns:
            The opened EditSession

        Raises:
            RouteNotFoundError: If the route is not registered
        """
        route = self.registry.get_route(route_id)

        if self.active_session is not None and self.active_session.is_open:
            logger.info(
                f"Leaving route '{self.active_session.route_id}' to open '{route_id}'"
            )
            await self.active_session.back()

        self.registry.set_current_route(route_id)
        log = OperationLog(str(self.operation_log_path)) if self.operation_log_path else None
        session = await EditSession.open(
            route,
            self.registry,
            self.recovery,
            on_close=on_close,
            operation_log=log,
        )
        self.active_session = session
        return session
