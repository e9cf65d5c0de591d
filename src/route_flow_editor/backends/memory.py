"""
In-memory snapshot store.

Values live for the lifetime of the store object, the same way browser
session storage lives for the lifetime of a tab.
"""

from .base import SnapshotStore


class MemorySnapshotStore(SnapshotStore):
    """Dictionary-backed snapshot store."""

    def __init__(self) -> None:
        self._values: dict[str, bytes] = {}

    async def read(self, key: str) -> bytes | None:
        return self._values.get(key)

    async def write(self, key: str, value: bytes) -> None:
        self._values[key] = value

    async def clear(self, key: str) -> None:
        self._values.pop(key, None)

    def exists(self, key: str) -> bool:
        return key in self._values
