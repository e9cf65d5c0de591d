"""
Pointer capture for node-drag and connection-drag gestures.

A drag is a short-lived sub-session: once it starts, every move and end
event is routed to it no matter which element the pointer is over, and the
capture is released when the drag ends, when its token's context exits, or
when the owning session closes.
"""

import logging
from typing import TYPE_CHECKING, Optional

from .exceptions import CaptureError
from .models import Position

if TYPE_CHECKING:
    from .session import EditSession

logger = logging.getLogger(__name__)


class DragHandler:
    """Receives the events of one captured drag."""

    description = "drag"

    async def on_move(self, position: Position) -> None:
        pass

    async def on_end(self, position: Position, target_id: str | None) -> None:
        pass


class NodeDrag(DragHandler):
    """Repositions a node as the pointer moves."""

    def __init__(self, session: "EditSession", node_id: str):
        self.session = session
        self.node_id = node_id
        self.description = f"node drag of '{node_id}'"

    async def on_move(self, position: Position) -> None:
        await self.session.move_node(self.node_id, position)

    async def on_end(self, position: Position, target_id: str | None) -> None:
        await self.session.move_node(self.node_id, position)


class ConnectionDrag(DragHandler):
    """Connects the source node to whatever node the drag ends over."""

    def __init__(
        self,
        session: "EditSession",
        source_id: str,
        source_handle: str | None = None,
    ):
        self.session = session
        self.source_id = source_id
        self.source_handle = source_handle
        self.description = f"connection drag from '{source_id}'"

    async def on_end(self, position: Position, target_id: str | None) -> None:
        if target_id is None:
            logger.debug(f"Connection drag from '{self.source_id}' ended over empty canvas")
            return
        await self.session.connect(self.source_id, target_id, source_handle=self.source_handle)


class CaptureToken:
    """
    Handle to one acquired capture.

    Usable as an async context manager; exiting the block releases the
    capture on every exit path. Releasing more than once is harmless.
    """

    def __init__(self, capture: "PointerCapture", handler: DragHandler):
        self._capture = capture
        self.handler = handler
        self.released = False

    def __repr__(self) -> str:
        state = "released" if self.released else "active"
        return f"CaptureToken({self.handler.description}, {state})"

    async def __aenter__(self) -> "CaptureToken":
        if self.released:
            raise CaptureError(f"Capture for {self.handler.description} was already released")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        self._capture._forget(self)
        logger.debug(f"Released pointer capture for {self.handler.description}")

    def _ensure_active(self) -> None:
        if self.released or self._capture.active is not self:
            raise CaptureError(f"Capture for {self.handler.description} is not active")

    async def move(self, x: float, y: float) -> None:
        """
        Route a move event to this capture's handler.

        Raises:
            CaptureError: If this capture has been released or superseded
        """
        self._ensure_active()
        await self._capture.move(x, y)

    async def end(self, x: float, y: float, target_id: str | None = None) -> None:
        """
        Route the end event to this capture's handler and release it.

        Raises:
            CaptureError: If this capture has been released or superseded
        """
        self._ensure_active()
        await self._capture.end(x, y, target_id)


class PointerCapture:
    """
    Routes global pointer events to at most one active drag.

    Acquiring a new capture while one is live releases the stale one first,
    so a drag whose end event was lost never keeps receiving events.
    """

    def __init__(self) -> None:
        self._active: Optional[CaptureToken] = None

    @property
    def active(self) -> Optional[CaptureToken]:
        return self._active

    @property
    def is_capturing(self) -> bool:
        return self._active is not None

    def acquire(self, handler: DragHandler) -> CaptureToken:
        if self._active is not None:
            logger.warning(
                f"Releasing stale capture for {self._active.handler.description} "
                f"before starting {handler.description}"
            )
            self._active.release()
        token = CaptureToken(self, handler)
        self._active = token
        logger.debug(f"Acquired pointer capture for {handler.description}")
        return token

    async def move(self, x: float, y: float) -> bool:
        """
        Deliver a move event to the active drag.

        Returns:
            True if a drag received the event
        """
        token = self._active
        if token is None:
            return False
        await token.handler.on_move(Position(x=x, y=y))
        return True

    async def end(self, x: float, y: float, target_id: str | None = None) -> bool:
        """
        Deliver the end event to the active drag and release it.

        The capture is released even if the handler raises.

        Returns:
            True if a drag received the event
        """
        token = self._active
        if token is None:
            return False
        try:
            await token.handler.on_end(Position(x=x, y=y), target_id)
        finally:
            token.release()
        return True

    def release_all(self) -> None:
        if self._active is not None:
            self._active.release()

    def _forget(self, token: CaptureToken) -> None:
        if self._active is token:
            self._active = None
