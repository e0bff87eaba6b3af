# geobench/api/websocket/manager.py
"""
Broadcast Hub

Publishes state changes to every interested observer:
- Performance snapshots (periodic)
- Benchmark lifecycle events (started/progress/output/completed)
- Monitoring on/off status

Observers are either WebSocket clients or in-process queue subscribers.
Each subscriber joins rooms (topics); a publish reaches the current members
of its room at most once. There is no acknowledgment, retry or
back-pressure: a failed WebSocket send drops the client, a full queue drops
the message. A client that missed events resubscribes and asks for a fresh
snapshot.
"""

import asyncio
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Union

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from geobench.core.constants import ALL_TOPICS, EventType, Topic
from geobench.utils.logger import logger

SnapshotProvider = Callable[[], dict[str, Any]]
StatusProvider = Callable[[], bool]
CommandHandler = Callable[[str, dict[str, Any]], Awaitable[None]]
ConnectHook = Callable[[str], Awaitable[None]]


@dataclass
class WSMessage:
    """Message structure shared by all subscriber kinds."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(asdict(self), default=str)


@dataclass
class ClientConnection:
    """Represents a connected WebSocket client."""

    websocket: WebSocket
    client_id: str
    subscriptions: set[str] = field(default_factory=set)
    connected_at: datetime = field(default_factory=datetime.now)

    async def send(self, message: WSMessage) -> bool:
        """Send a message to this client."""
        if self.websocket.client_state != WebSocketState.CONNECTED:
            logger.debug(f"Skipping send to {self.client_id}; websocket not accepted")
            return False
        try:
            await self.websocket.send_text(message.to_json())
            return True
        except Exception as e:
            logger.warning(f"Failed to send to client {self.client_id}: {e}")
            return False


@dataclass
class QueueSubscriber:
    """In-process observer fed through its own bounded queue."""

    client_id: str
    subscriptions: set[str] = field(default_factory=set)
    connected_at: datetime = field(default_factory=datetime.now)
    maxsize: int = 256
    queue: asyncio.Queue = field(init=False)
    dropped: int = 0

    def __post_init__(self) -> None:
        self.queue = asyncio.Queue(maxsize=self.maxsize)

    async def send(self, message: WSMessage) -> bool:
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.debug(f"Queue full for {self.client_id}; dropped {message.type}")
        return True

    async def get(self, timeout: Optional[float] = None) -> WSMessage:
        """Next message, optionally bounded by a timeout."""
        if timeout is None:
            return await self.queue.get()
        return await asyncio.wait_for(self.queue.get(), timeout=timeout)

    def drain(self) -> list[WSMessage]:
        """Everything queued right now, without waiting."""
        messages: list[WSMessage] = []
        while not self.queue.empty():
            messages.append(self.queue.get_nowait())
        return messages


Subscriber = Union[ClientConnection, QueueSubscriber]


class BroadcastHub:
    """
    Manages subscribers and topic-filtered broadcasting.

    Features:
    - WebSocket and in-process subscribers
    - Room-based subscriptions (performance, benchmark, monitoring)
    - Joiners receive the current snapshot and monitoring status
    - Automatic cleanup of clients whose sends fail
    """

    def __init__(self, max_connections: int = 100, queue_size: int = 256):
        self._connections: dict[str, Subscriber] = {}
        self._max_connections = max_connections
        self._queue_size = queue_size
        self._lock = asyncio.Lock()
        self._client_counter = 0

        self._snapshot_provider: Optional[SnapshotProvider] = None
        self._status_provider: Optional[StatusProvider] = None
        self._command_handler: Optional[CommandHandler] = None
        self._connect_hook: Optional[ConnectHook] = None

    def bind(
        self,
        snapshot_provider: Optional[SnapshotProvider] = None,
        status_provider: Optional[StatusProvider] = None,
        command_handler: Optional[CommandHandler] = None,
        connect_hook: Optional[ConnectHook] = None,
    ) -> None:
        """Wire the hub to the state owner."""
        self._snapshot_provider = snapshot_provider
        self._status_provider = status_provider
        self._command_handler = command_handler
        self._connect_hook = connect_hook

    @property
    def connection_count(self) -> int:
        """Get current number of subscribers."""
        return len(self._connections)

    def _next_client_id(self, prefix: str) -> str:
        self._client_counter += 1
        return f"{prefix}_{self._client_counter}"

    # ------------------------------------------------------------------
    # Joining and leaving
    # ------------------------------------------------------------------

    async def connect(self, websocket: WebSocket) -> Optional[str]:
        """
        Accept a new WebSocket connection.

        Args:
            websocket: The WebSocket connection

        Returns:
            Client ID if connected, None if rejected
        """
        async with self._lock:
            if len(self._connections) >= self._max_connections:
                logger.warning("Max WebSocket connections reached")
                await websocket.close(code=1013, reason="Max connections reached")
                return None

            await websocket.accept()

            client_id = self._next_client_id("client")
            connection = ClientConnection(
                websocket=websocket,
                client_id=client_id,
                subscriptions=set(ALL_TOPICS),
            )
            self._connections[client_id] = connection

        logger.info(f"WebSocket client connected: {client_id}")
        await connection.send(WSMessage(type=EventType.CONNECTED.value, data={"client_id": client_id}))
        await self._on_join(connection)
        return client_id

    async def open_queue(self, topics: Optional[list[str]] = None) -> QueueSubscriber:
        """Register an in-process subscriber; it receives the same initial state as a WebSocket client."""
        async with self._lock:
            subscriber = QueueSubscriber(
                client_id=self._next_client_id("queue"),
                subscriptions=set(topics or ALL_TOPICS),
                maxsize=self._queue_size,
            )
            self._connections[subscriber.client_id] = subscriber

        logger.debug(f"Queue subscriber registered: {subscriber.client_id}")
        await self._on_join(subscriber)
        return subscriber

    async def _on_join(self, subscriber: Subscriber) -> None:
        if self._connect_hook is not None:
            try:
                await self._connect_hook(subscriber.client_id)
            except Exception as e:
                logger.error(f"Connect hook failed for {subscriber.client_id}: {e}")
        await self.send_initial_state(subscriber.client_id)

    async def send_initial_state(self, client_id: str) -> None:
        """Send the current snapshot and monitoring status to one subscriber."""
        subscriber = self._connections.get(client_id)
        if subscriber is None:
            return
        if self._snapshot_provider is not None:
            await subscriber.send(
                WSMessage(type=EventType.PERFORMANCE_UPDATE.value, data=self._snapshot_provider())
            )
        if self._status_provider is not None:
            await subscriber.send(
                WSMessage(
                    type=EventType.MONITORING_STATUS.value,
                    data={"is_monitoring": self._status_provider()},
                )
            )

    async def disconnect(self, client_id: str) -> None:
        """
        Remove a subscriber.

        Args:
            client_id: The client ID to disconnect
        """
        async with self._lock:
            if client_id in self._connections:
                del self._connections[client_id]
                logger.info(f"Subscriber disconnected: {client_id}")

    async def subscribe(self, client_id: str, topics: list[str]) -> None:
        """
        Subscribe a client to topics.

        Args:
            client_id: The client ID
            topics: List of topics to join
        """
        if client_id in self._connections:
            self._connections[client_id].subscriptions.update(topics)
            logger.debug(f"Client {client_id} subscribed to: {topics}")

    async def unsubscribe(self, client_id: str, topics: list[str]) -> None:
        """
        Unsubscribe a client from topics.

        Args:
            client_id: The client ID
            topics: List of topics to leave
        """
        if client_id in self._connections:
            self._connections[client_id].subscriptions.difference_update(topics)
            logger.debug(f"Client {client_id} unsubscribed from: {topics}")

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def send_to_client(self, client_id: str, message: WSMessage) -> bool:
        """
        Send a message to a specific client.

        Returns:
            True if sent successfully
        """
        subscriber = self._connections.get(client_id)
        if subscriber is None:
            return False
        return await subscriber.send(message)

    async def broadcast(
        self,
        message: WSMessage,
        topic: Optional[str] = None,
    ) -> int:
        """
        Broadcast a message to all subscribers.

        Args:
            message: The message to broadcast
            topic: Optional topic filter (only send to members of the room)

        Returns:
            Number of subscribers that received the message
        """
        sent_count = 0
        disconnected: list[str] = []

        # Snapshot the members; connects/disconnects may interleave with sends.
        for client_id, subscriber in list(self._connections.items()):
            if topic and topic not in subscriber.subscriptions:
                continue

            if await subscriber.send(message):
                sent_count += 1
            else:
                disconnected.append(client_id)

        for client_id in disconnected:
            await self.disconnect(client_id)

        return sent_count

    async def publish(self, topic: Topic | str, event: EventType | str, data: dict[str, Any]) -> int:
        """Publish one event to one topic."""
        topic_name = topic.value if isinstance(topic, Topic) else topic
        event_name = event.value if isinstance(event, EventType) else event
        return await self.broadcast(WSMessage(type=event_name, data=data), topic=topic_name)

    async def broadcast_performance(self, snapshot: dict[str, Any]) -> int:
        """Broadcast a full performance snapshot."""
        return await self.publish(Topic.PERFORMANCE, EventType.PERFORMANCE_UPDATE, snapshot)

    async def broadcast_monitoring_status(self, is_monitoring: bool) -> int:
        """Broadcast the coarse monitoring on/off state."""
        return await self.publish(Topic.MONITORING, EventType.MONITORING_STATUS, {"is_monitoring": is_monitoring})

    # ------------------------------------------------------------------
    # Client commands
    # ------------------------------------------------------------------

    async def handle_client_message(self, client_id: str, message: str) -> None:
        """
        Handle an incoming message from a client.

        Args:
            client_id: The client ID
            message: The raw message string
        """
        try:
            data = json.loads(message)
            msg_type = data.get("type", "")

            if msg_type == EventType.PING.value:
                await self.send_to_client(client_id, WSMessage(type=EventType.PONG.value, data={}))

            elif msg_type == EventType.SUBSCRIBE.value:
                await self.subscribe(client_id, self._valid_topics(data))

            elif msg_type == EventType.UNSUBSCRIBE.value:
                await self.unsubscribe(client_id, self._valid_topics(data))

            elif msg_type == EventType.REQUEST_SNAPSHOT.value:
                await self.send_initial_state(client_id)

            elif msg_type in (EventType.START_MONITORING.value, EventType.STOP_MONITORING.value):
                if self._command_handler is not None:
                    await self._command_handler(msg_type, data)

            else:
                logger.warning(f"Unknown WebSocket message type: {msg_type}")

        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON from client {client_id}")
        except Exception as e:
            logger.error(f"Error handling client message: {e}")

    @staticmethod
    def _valid_topics(data: dict[str, Any]) -> list[str]:
        requested = data.get("rooms") or data.get("channels") or []
        if isinstance(requested, str):
            requested = [requested]
        return [t for t in requested if t in ALL_TOPICS]

    def get_stats(self) -> dict[str, Any]:
        """Get hub statistics."""
        return {
            "total_connections": len(self._connections),
            "max_connections": self._max_connections,
            "clients": [
                {
                    "client_id": conn.client_id,
                    "subscriptions": sorted(conn.subscriptions),
                    "connected_at": conn.connected_at.isoformat(),
                }
                for conn in self._connections.values()
            ],
        }
