"""
Operation records for edit-session diagnostics.

Every operation an edit session performs (or refuses) is recorded with its
outcome so that absorbed errors stay visible without ever being raised
across the UI boundary.
"""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiofiles

logger = logging.getLogger(__name__)


@dataclass
class Operation:
    """Records a single session operation and its outcome."""

    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    operation_type: str = ""  # "add_node", "remove_node", "connect", "save", etc.
    route_id: str | None = None
    node_id: str | None = None
    edge_id: str | None = None
    success: bool = False
    error: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Operation":
        """Create Operation from dictionary (reverse of to_dict)."""
        data = data.copy()
        if isinstance(data["timestamp"], str):
            data["timestamp"] = datetime.fromisoformat(data["timestamp"])
        return cls(**data)


class OperationLog:
    """
    Bounded, in-memory log of session operations.

    Optionally appends every operation to a JSONL file for offline
    debugging. Only the most recent ``max_entries`` stay in memory.
    """

    def __init__(self, log_path: str | None = None, max_entries: int = 1000):
        """
        Initialize operation log.

        Args:
            log_path: Optional JSONL file to append operations to
            max_entries: Maximum entries to keep in memory (default: 1000)
        """
        self.log_path = Path(log_path) if log_path else None
        self.max_entries = max_entries
        self._lock = asyncio.Lock()
        self._operations: list[Operation] = []

    def __len__(self) -> int:
        return len(self._operations)

    async def append(self, operation: Operation) -> None:
        """
        Record an operation.

        Failures writing the optional JSONL file are logged, not raised.
        """
        async with self._lock:
            self._operations.append(operation)
            if len(self._operations) > self.max_entries:
                self._operations = self._operations[-self.max_entries :]

            if self.log_path is None:
                return
            try:
                self.log_path.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(self.log_path, "a", encoding="utf-8") as f:
                    await f.write(json.dumps(operation.to_dict(), ensure_ascii=False) + "\n")
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Failed to write operation log {self.log_path}: {e}")

    def read_all(self) -> list[Operation]:
        return list(self._operations)

    def failures(self) -> list[Operation]:
        """Operations that were refused or failed."""
        return [op for op in self._operations if not op.success]

    @property
    def last(self) -> Operation | None:
        return self._operations[-1] if self._operations else None
