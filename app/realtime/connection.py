import asyncio
import uuid
from typing import TYPE_CHECKING, Any, List, Optional

from fastapi import WebSocket, WebSocketDisconnect
from loguru import logger

from app.db.schema import UserRole

if TYPE_CHECKING:
    from app.realtime.hub import Hub


# Close codes that mean the peer simply went away
EXPECTED_CLOSE_CODES = {1000, 1001, 1005, 1006}

FRAME_SEPARATOR = "\n"

_CLOSED = object()


class Connection:
    """
    One live client channel.

    The outbound queue is private to the connection: the hub offers messages
    to it without ever waiting, and `write_pump` is its only consumer.
    """

    def __init__(
        self,
        websocket: WebSocket,
        hub: "Hub",
        user_id: uuid.UUID,
        role: UserRole,
        supplier_id: Optional[uuid.UUID] = None,
        queue_size: int = 256
    ):
        self.websocket = websocket
        self.hub = hub
        self.user_id = str(user_id)
        self.role = UserRole(role)
        self.supplier_id = str(supplier_id) if supplier_id else None
        self.queue_size = queue_size
        self.closed = False
        # Capacity is enforced in offer() so the close marker always fits
        self._queue: asyncio.Queue = asyncio.Queue()

    def __repr__(self) -> str:
        return f"<Connection user={self.user_id} role={self.role.value} supplier={self.supplier_id}>"

    # ==========================================================================
    # QUEUE (called from the hub's control loop)
    # ==========================================================================

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def offer(self, data: str) -> bool:
        """Queues `data` unless the queue is closed or full. Never waits."""
        if self.closed or self._queue.qsize() >= self.queue_size:
            return False
        self._queue.put_nowait(data)
        return True

    def close(self) -> None:
        """Closes the outbound queue. Already queued messages are still written."""
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(_CLOSED)

    # ==========================================================================
    # DUTIES
    # ==========================================================================

    async def read_pump(self) -> None:
        """
        Receives frames until the peer disconnects or the socket fails,
        then leaves the hub.
        """
        try:
            while True:
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    self._log_close(message.get("code", 1000))
                    break
                payload = message.get("text")
                if payload is None:
                    payload = message.get("bytes")
                logger.debug(f"Received message from {self.user_id}: {payload!r}")
        except WebSocketDisconnect as exc:
            self._log_close(exc.code)
        except Exception:
            logger.exception(f"WebSocket read error for {self.user_id}")
        finally:
            self.hub.unregister(self)

    async def write_pump(self) -> None:
        """
        Drains the outbound queue. Everything queued by the time a write
        starts goes out in one frame, separated by newlines.
        """
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                await self._send_close()
                return

            batch: List[str] = [item]
            close_after = False
            while not self._queue.empty():
                queued = self._queue.get_nowait()
                if queued is _CLOSED:
                    close_after = True
                    break
                batch.append(queued)

            try:
                await self.websocket.send_text(FRAME_SEPARATOR.join(batch))
            except Exception as exc:
                logger.info(f"WebSocket write to {self.user_id} failed: {exc}")
                self.hub.unregister(self)
                await self._send_close()
                return

            if close_after:
                await self._send_close()
                return

    def _log_close(self, code: int) -> None:
        if code not in EXPECTED_CLOSE_CODES:
            logger.warning(
                f"WebSocket for {self.user_id} closed unexpectedly (code {code})")

    async def _send_close(self) -> None:
        try:
            await self.websocket.close()
        except (RuntimeError, OSError, WebSocketDisconnect) as exc:
            # The read side may already have torn the socket down
            logger.debug(f"WebSocket for {self.user_id} already closed: {exc}")

    async def serve(self) -> None:
        """Runs both duties until the connection ends."""
        writer = asyncio.create_task(
            self.write_pump(), name=f"ws-writer-{self.user_id}")
        try:
            await self.read_pump()
        finally:
            await writer

    def matches(self, **criteria: Any) -> bool:
        """
        Address filter used by the hub. Supported keys: user_id, role,
        supplier_id. All given criteria must hold.
        """
        for key, expected in criteria.items():
            value = getattr(self, key)
            if key == "role":
                if value != UserRole(expected):
                    return False
            elif value is None or value != str(expected):
                return False
        return True
