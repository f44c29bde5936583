import asyncio
import logging
from typing import Any, Dict, Iterable, Optional, Protocol, Set

from ..models.assignment_models import Assignment
from ..models.event_models import RoomEvent

logger = logging.getLogger(__name__)

# --- Outbound event names ---
EVENT_NEW_TASK = "new_task"
EVENT_NEW_CLASS = "new_class"

RELAY_RETRY_SECONDS = 5


class Connection(Protocol):
    """Anything that can push a JSON frame to one client, e.g. a starlette WebSocket."""
    async def send_json(self, data: Any) -> None: ...


class RoomRelay(Protocol):
    async def publish_room_event(self, event: RoomEvent) -> int: ...
    def listen_room_events(self): ...


def class_room(class_name: str, section: str) -> str:
    return f"class:{class_name}{section}"


def student_room(student_id: str) -> str:
    return f"student:{student_id}"


class RealtimeHub:
    """
    Room-based fan-out of realtime events to connected clients.

    Delivery is at-most-once: no acknowledgement, no retry and no queueing for clients
    that are not connected. Membership lives in this process only; a client must rejoin
    its rooms after reconnecting. With a relay attached, events are published through it
    and delivered to local members by run_relay_listener in every process.
    """

    def __init__(self, relay: Optional[RoomRelay] = None):
        self._relay = relay
        self._relay_listening = False
        self._connections: Set[Connection] = set()
        self._rooms: Dict[str, Set[Connection]] = {}
        self._memberships: Dict[Connection, Set[str]] = {}

    # ===== Connection Lifecycle =====

    def connect(self, connection: Connection):
        self._connections.add(connection)
        self._memberships.setdefault(connection, set())

    def disconnect(self, connection: Connection):
        """Forgets the connection and removes it from every room it joined."""
        self._connections.discard(connection)
        for room in self._memberships.pop(connection, set()):
            members = self._rooms.get(room)
            if members is None:
                continue
            members.discard(connection)
            if not members:
                del self._rooms[room]

    def join_class_room(self, connection: Connection, class_name: str, section: str) -> str:
        return self._join(connection, class_room(class_name, section))

    def join_student_room(self, connection: Connection, student_id: str) -> str:
        return self._join(connection, student_room(student_id))

    def _join(self, connection: Connection, room: str) -> str:
        self.connect(connection)
        self._rooms.setdefault(room, set()).add(connection)
        self._memberships[connection].add(room)
        logger.debug(f"Connection joined room '{room}' ({len(self._rooms[room])} member(s)).")
        return room

    def room_members(self, room: str) -> Set[Connection]:
        return set(self._rooms.get(room, ()))

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # ===== Publishing =====

    async def publish_new_assignment(self, student_id: str, assignment: Any) -> int:
        """
        Delivers a new assignment to the student's room. An empty room is a no-op.
        Returns the number of local connections the event was addressed to.
        """
        if isinstance(assignment, Assignment):
            assignment = assignment.model_dump(by_alias=True, mode="json")
        return await self.emit_to_room(student_room(student_id), EVENT_NEW_TASK, assignment)

    async def publish_new_class(self, school_class: Any) -> int:
        """Broadcasts a newly created class to every connection."""
        return await self.emit_to_room(None, EVENT_NEW_CLASS, school_class)

    async def emit_to_room(self, room: Optional[str], event: str, data: Any) -> int:
        """
        Sends an event to a room, or to every connection when room is None.

        Local members are served by the relay listener only while it is subscribed and
        Redis reports at least one subscriber; otherwise they are delivered to directly.
        """
        if self._relay is not None:
            try:
                subscribers = await self._relay.publish_room_event(RoomEvent(room=room, event=event, data=data))
            except Exception as e:
                logger.error(f"Relay publish of '{event}' failed, delivering locally: {e}")
            else:
                if self._relay_listening and subscribers:
                    return len(self._targets(room))
                logger.debug(f"No active relay listener for '{event}', delivering locally.")
        return await self.deliver_local(room, event, data)

    async def deliver_local(self, room: Optional[str], event: str, data: Any) -> int:
        """Delivers an event to this process's members of the room."""
        return await self._send(self._targets(room), {"event": event, "data": data})

    def _targets(self, room: Optional[str]) -> Set[Connection]:
        if room is None:
            return set(self._connections)
        return self.room_members(room)

    async def _send(self, connections: Iterable[Connection], message: Dict[str, Any]) -> int:
        targets = list(connections)
        if not targets:
            return 0

        results = await asyncio.gather(
            *(connection.send_json(message) for connection in targets), return_exceptions=True
        )
        delivered = 0
        for connection, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.warning(f"Dropping realtime connection after failed '{message['event']}' send: {result}")
                self.disconnect(connection)
            else:
                delivered += 1
        return delivered

    # ===== Cross-process Relay =====

    def attach_relay(self, relay: RoomRelay):
        self._relay = relay

    async def run_relay_listener(self):
        """Delivers relayed events to local room members until cancelled."""
        if self._relay is None:
            return
        while True:
            events = self._relay.listen_room_events()
            try:
                self._relay_listening = True
                async for event in events:
                    await self.deliver_local(event.room, event.event, event.data)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Realtime relay listener failed, resubscribing in {RELAY_RETRY_SECONDS}s: {e}")
            finally:
                self._relay_listening = False
                await events.aclose()
            await asyncio.sleep(RELAY_RETRY_SECONDS)
