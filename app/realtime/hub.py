import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set, Union

from loguru import logger

from app.core.config import settings
from app.db.schema import UserRole
from app.models.realtime import Envelope
from app.realtime.connection import Connection


Identifier = Union[str, uuid.UUID]


@dataclass
class _Register:
    connection: Connection


@dataclass
class _Unregister:
    connection: Connection


@dataclass
class _Broadcast:
    payload: str
    # Empty criteria means every live connection
    criteria: Dict[str, Any] = field(default_factory=dict)


class Hub:
    """
    Registry of live connections.

    The connection set is owned by a single control task. Everything that
    changes it (register, unregister, delivery with eviction) is submitted
    as an event and applied by that task in submission order, so a send
    submitted after a register always sees the new connection.

    Submissions never wait: they are safe to call from the event loop and
    from the worker threads that run sync request handlers.
    """

    def __init__(self, queue_size: int = 256):
        self.queue_size = queue_size
        self._connections: Set[Connection] = set()
        self._events: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # ==========================================================================
    # LIFECYCLE
    # ==========================================================================

    async def start(self) -> None:
        if self.is_running:
            return
        self._loop = asyncio.get_running_loop()
        self._events = asyncio.Queue()
        self._task = asyncio.create_task(self._run(), name="hub-control-loop")
        logger.info("Connection hub started")

    async def stop(self) -> None:
        if not self.is_running:
            return
        await self.drain()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

        for connection in list(self._connections):
            connection.close()
        self._connections.clear()
        self._task = None
        logger.info("Connection hub stopped")

    async def drain(self) -> None:
        """Waits until every event submitted so far has been applied."""
        if self._events is not None:
            await self._events.join()

    async def _run(self) -> None:
        while True:
            event = await self._events.get()
            try:
                self._apply(event)
            except Exception:
                logger.exception(f"Hub failed to apply {type(event).__name__}")
            finally:
                self._events.task_done()

    def _apply(self, event) -> None:
        if isinstance(event, _Register):
            self._connections.add(event.connection)
            logger.info(
                f"Client connected: {event.connection.user_id} (role: {event.connection.role.value})")

        elif isinstance(event, _Unregister):
            if event.connection in self._connections:
                self._connections.discard(event.connection)
                event.connection.close()
                logger.info(
                    f"Client disconnected: {event.connection.user_id}")

        elif isinstance(event, _Broadcast):
            self._deliver(event.payload, event.criteria)

    def _deliver(self, payload: str, criteria: Dict[str, Any]) -> None:
        for connection in list(self._connections):
            if criteria and not connection.matches(**criteria):
                continue
            if not connection.offer(payload):
                # A peer that cannot keep up is dropped; it will reconnect
                self._connections.discard(connection)
                connection.close()
                logger.warning(
                    f"Evicted slow client {connection.user_id} ({connection.pending} queued)")

    def _submit(self, event) -> bool:
        if not self.is_running:
            return False

        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None

        if running_loop is self._loop:
            self._events.put_nowait(event)
        else:
            self._loop.call_soon_threadsafe(self._events.put_nowait, event)
        return True

    # ==========================================================================
    # REGISTRATION
    # ==========================================================================

    def register(self, connection: Connection) -> None:
        if not self._submit(_Register(connection)):
            raise RuntimeError("Connection hub is not running.")

    def unregister(self, connection: Connection) -> None:
        if not self._submit(_Unregister(connection)):
            # Nobody owns the set any more; just release the writer
            connection.close()

    async def serve(
        self,
        websocket,
        user_id: Identifier,
        role: UserRole,
        supplier_id: Optional[Identifier] = None
    ) -> None:
        """
        Entry point for an accepted, authenticated socket. Registers a new
        connection and returns once the peer is gone.
        """
        connection = Connection(
            websocket, self, user_id, role, supplier_id,
            queue_size=self.queue_size
        )
        self.register(connection)
        await connection.serve()

    # ==========================================================================
    # DELIVERY
    # ==========================================================================

    def broadcast(self, payload: str) -> None:
        """Delivers an already serialized payload to every live connection."""
        self._publish(payload, {})

    def send_to_user(self, user_id: Identifier, message: Envelope) -> None:
        """Every connection of this identity, whatever its role or device."""
        self._send(message, user_id=str(user_id))

    def send_to_supplier(self, supplier_id: Identifier, message: Envelope) -> None:
        """Every connected staff member of this supplier."""
        self._send(message, supplier_id=str(supplier_id))

    def send_to_consumer(self, consumer_id: Identifier, message: Envelope) -> None:
        """Connections of this identity that declared the consumer role."""
        self._send(message, user_id=str(consumer_id), role=UserRole.CONSUMER)

    def _send(self, message: Envelope, **criteria: Any) -> None:
        try:
            payload = message.model_dump_json()
        except (TypeError, ValueError) as exc:
            logger.error(f"Error serializing {message.type} message: {exc}")
            return
        self._publish(payload, criteria)

    def _publish(self, payload: str, criteria: Dict[str, Any]) -> None:
        if not self._submit(_Broadcast(payload, criteria)):
            logger.debug("Connection hub not running, live notification dropped")


hub = Hub(queue_size=settings.ws_send_queue_size)
