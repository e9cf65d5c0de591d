"""
Abstract base class for transient snapshot stores.

Defines the interface that all snapshot stores must implement.
"""

from abc import ABC, abstractmethod


class SnapshotStore(ABC):
    """
    Abstract base class for string-keyed transient storage.

    Stores hold opaque encoded values; a missing key is a normal state and
    reads of it return None. Stores make no attempt to merge values: every
    write replaces whatever the key held before.
    """

    @abstractmethod
    async def read(self, key: str) -> bytes | None:
        """
        Read the value stored under a key.

        Args:
            key: Slot key

        Returns:
            The stored bytes, or None if the key is absent

        Raises:
            SnapshotError: If the underlying storage fails
        """
        pass

    @abstractmethod
    async def write(self, key: str, value: bytes) -> None:
        """
        Store a value under a key, replacing any previous value.

        Args:
            key: Slot key
            value: Encoded value

        Raises:
            SnapshotError: If the underlying storage fails
        """
        pass

    @abstractmethod
    async def clear(self, key: str) -> None:
        """
        Remove a key. Clearing an absent key is not an error.

        Args:
            key: Slot key

        Raises:
            SnapshotError: If the underlying storage fails
        """
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """
        Check whether a key currently holds a value.

        Args:
            key: Slot key

        Returns:
            True if a value is stored, False otherwise
        """
        pass

    def validate_key(self, key: str) -> None:
        """
        Check that a key can be stored. Any key is accepted by default.

        Raises:
            SnapshotError: If the store cannot hold a value under ``key``
        """
