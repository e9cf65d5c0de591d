"""
Filesystem-based snapshot store implementation.

Each key is stored as one file in a configurable directory, so recoverable
snapshots survive a process restart.
"""

import asyncio
import logging
import os
import re
from pathlib import Path

import aiofiles

from ..exceptions import SnapshotError
from .base import SnapshotStore

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class FilesystemSnapshotStore(SnapshotStore):
    """
    Filesystem snapshot store using one file per key.

    Writes go to a temporary sibling file that is then renamed over the
    slot, so a crash mid-write never leaves a half-written value behind.
    All file operations are serialised with an asyncio.Lock.
    """

    def __init__(self, base_dir: str = "./.flow_snapshots", suffix: str = ".msgpack"):
        """
        Initialize filesystem store.

        Args:
            base_dir: Directory holding the slot files
            suffix: File extension for slot files
        """
        self.base_dir = Path(base_dir)
        self.suffix = suffix
        self._lock = asyncio.Lock()

    def _path_for(self, key: str) -> Path:
        self.validate_key(key)
        return self.base_dir / f"{key}{self.suffix}"

    def validate_key(self, key: str) -> None:
        if not _SAFE_KEY.match(key):
            raise SnapshotError(f"Invalid snapshot key: '{key}'")

    async def read(self, key: str) -> bytes | None:
        """Read the slot file, or return None if it does not exist."""
        path = self._path_for(key)
        async with self._lock:
            if not path.exists():
                return None
            try:
                async with aiofiles.open(path, mode="rb") as f:
                    return await f.read()
            except OSError as e:
                logger.error(f"Failed to read snapshot slot {path}: {e}")
                raise SnapshotError(f"Failed to read snapshot slot '{key}': {e}") from e

    async def write(self, key: str, value: bytes) -> None:
        """Atomically replace the slot file."""
        path = self._path_for(key)
        tmp_path = path.with_name(path.name + ".tmp")
        async with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(tmp_path, mode="wb") as f:
                    await f.write(value)
                os.replace(tmp_path, path)
                logger.debug(f"Wrote {len(value)} bytes to snapshot slot {path}")
            except OSError as e:
                logger.error(f"Failed to write snapshot slot {path}: {e}")
                raise SnapshotError(f"Failed to write snapshot slot '{key}': {e}") from e

    async def clear(self, key: str) -> None:
        """Delete the slot file if present."""
        path = self._path_for(key)
        async with self._lock:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"Failed to clear snapshot slot {path}: {e}")
                raise SnapshotError(f"Failed to clear snapshot slot '{key}': {e}") from e

    def exists(self, key: str) -> bool:
        return self._path_for(key).exists()
