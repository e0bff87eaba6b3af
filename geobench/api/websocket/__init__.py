"""WebSocket broadcasting module."""

from geobench.api.websocket.manager import BroadcastHub, QueueSubscriber, WSMessage

__all__ = ["BroadcastHub", "QueueSubscriber", "WSMessage"]
