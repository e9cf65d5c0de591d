"""
Transient snapshot recovery for in-progress flows.

This module mirrors the live graph into a single-slot snapshot store and
restores it when the owning route is reopened, enabling recovery after a
crash or after navigating away without saving.
"""

import hashlib
import logging
from typing import Any, Iterable

import msgpack
from pydantic import ValidationError

from .backends import SnapshotStore
from .exceptions import (
    FlowEditorError,
    SnapshotCorruptedError,
    SnapshotError,
    SnapshotVersionError,
)
from .graph_store import GraphStore
from .models import Edge, Node, TransientSnapshot

logger = logging.getLogger(__name__)

# Slot format version for future migrations
SNAPSHOT_VERSION = 1

DEFAULT_SLOT_KEY = "tempFlowData"


def compute_checksum(payload: dict[str, Any]) -> str:
    """
    Compute SHA256 checksum of a snapshot payload.

    Args:
        payload: Snapshot dictionary (without envelope fields)

    Returns:
        Hex string of SHA256 hash
    """
    serialized = msgpack.packb(payload, use_bin_type=True)
    return hashlib.sha256(serialized).hexdigest()


def encode_snapshot(snapshot: TransientSnapshot) -> bytes:
    """
    Encode a snapshot into a versioned, checksummed msgpack envelope.

    Args:
        snapshot: Snapshot to encode

    Returns:
        Encoded bytes ready for a SnapshotStore

    Raises:
        SnapshotError: If the graph holds values msgpack cannot pack
    """
    try:
        payload = snapshot.to_dict()
        envelope = {
            "version": SNAPSHOT_VERSION,
            "checksum": compute_checksum(payload),
            "payload": payload,
        }
        return msgpack.packb(envelope, use_bin_type=True)
    except (TypeError, ValueError, OverflowError) as e:
        raise SnapshotError(f"Failed to encode snapshot for route '{snapshot.route_id}': {e}") from e


def decode_snapshot(raw: bytes) -> TransientSnapshot:
    """
    Decode and validate an encoded snapshot.

    Args:
        raw: Bytes read from a SnapshotStore

    Returns:
        The decoded TransientSnapshot

    Raises:
        SnapshotVersionError: If the envelope version is not supported
        SnapshotCorruptedError: If the bytes cannot be decoded, the checksum
            does not match, the payload fails validation, or the graph it
            describes has a dangling edge or repeated id
    """
    try:
        envelope = msgpack.unpackb(raw, raw=False)
        if not isinstance(envelope, dict):
            raise SnapshotCorruptedError("Snapshot envelope is not a mapping")

        version = envelope.get("version")
        if version is None:
            raise SnapshotVersionError("Snapshot missing version field")
        if version != SNAPSHOT_VERSION:
            raise SnapshotVersionError(
                f"Unsupported snapshot version {version}. Expected {SNAPSHOT_VERSION}"
            )

        payload = envelope.get("payload")
        stored_checksum = envelope.get("checksum")
        if stored_checksum is None or not isinstance(payload, dict):
            raise SnapshotCorruptedError("Snapshot missing payload or checksum")
        if stored_checksum != compute_checksum(payload):
            raise SnapshotCorruptedError("Snapshot integrity check failed: checksums don't match")

        snapshot = TransientSnapshot.model_validate(payload)
        GraphStore(snapshot.nodes, snapshot.edges).check_invariants()
        return snapshot

    except SnapshotError:
        raise
    except (ValidationError, FlowEditorError) as e:
        raise SnapshotCorruptedError(f"Snapshot describes an invalid graph: {e}") from e
    except Exception as e:
        raise SnapshotCorruptedError(f"Failed to decode snapshot: {e}") from e


class RecoveryManager:
    """
    Bridges the live graph and a single-slot transient snapshot.

    The slot is global, not namespaced per route: every mirror overwrites it
    and stamps the route that owns the graph. Recall only hands back a
    snapshot stamped with the route being opened, so a slot left behind by a
    different route stays untouched until that route writes over it again.
    """

    def __init__(self, store: SnapshotStore, slot_key: str = DEFAULT_SLOT_KEY):
        """
        Initialize the recovery manager.

        Args:
            store: Where the slot lives
            slot_key: Key of the single slot

        Raises:
            SnapshotError: If ``store`` cannot hold a value under ``slot_key``
        """
        store.validate_key(slot_key)
        self.store = store
        self.slot_key = slot_key

    async def mirror(self, route_id: str, nodes: Iterable[Node], edges: Iterable[Edge]) -> None:
        """
        Write the current graph to the slot, replacing any previous value.

        Raises:
            SnapshotError: If the graph cannot be encoded or the store fails to write
        """
        snapshot = TransientSnapshot(route_id=route_id, nodes=list(nodes), edges=list(edges))
        await self.store.write(self.slot_key, encode_snapshot(snapshot))
        logger.debug(
            f"Mirrored route '{route_id}' ({len(snapshot.nodes)} nodes, "
            f"{len(snapshot.edges)} edges) to slot '{self.slot_key}'"
        )

    async def peek(self) -> TransientSnapshot | None:
        """
        Decode the slot without checking which route owns it.

        Returns:
            The snapshot, or None if the slot is absent, unreadable or corrupt
        """
        try:
            raw = await self.store.read(self.slot_key)
            if raw is None:
                return None
            return decode_snapshot(raw)
        except SnapshotError as e:
            logger.warning(f"Ignoring unusable snapshot in slot '{self.slot_key}': {e}")
            return None

    async def recall(self, route_id: str) -> TransientSnapshot | None:
        """
        Fetch the slot if it belongs to ``route_id``.

        A slot owned by another route is left as is. A corrupt slot is
        treated as absent and also left as is.

        Returns:
            The matching snapshot, or None
        """
        snapshot = await self.peek()
        if snapshot is None:
            return None
        if snapshot.route_id != route_id:
            logger.debug(
                f"Slot '{self.slot_key}' belongs to route '{snapshot.route_id}', "
                f"not '{route_id}'"
            )
            return None
        logger.info(
            f"Recovered unsaved flow for route '{route_id}' "
            f"({len(snapshot.nodes)} nodes, {len(snapshot.edges)} edges)"
        )
        return snapshot

    async def clear(self) -> None:
        """
        Remove the slot unconditionally.

        Raises:
            SnapshotError: If the store fails to clear
        """
        await self.store.clear(self.slot_key)
        logger.debug(f"Cleared snapshot slot '{self.slot_key}'")
