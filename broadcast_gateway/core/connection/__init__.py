"""
Connection Management Module.

Components composed by ConnectionManager:
- registry.py: Identity assignment and the table of active sessions
- session.py: Per-connection state machine and outbound writer
- broadcaster.py: Sender-excluding fan-out
- lifecycle.py: Connection accept/disconnect
- stats.py: Statistics aggregation
"""

from broadcast_gateway.core.connection.registry import ConnectionRegistry
from broadcast_gateway.core.connection.session import (
    ConnectionSession,
    SessionState,
    is_ws_connected,
)
from broadcast_gateway.core.connection.broadcaster import ConnectionBroadcaster
from broadcast_gateway.core.connection.lifecycle import ConnectionLifecycle
from broadcast_gateway.core.connection.stats import ConnectionStats

__all__ = [
    "ConnectionRegistry",
    "ConnectionSession",
    "SessionState",
    "is_ws_connected",
    "ConnectionBroadcaster",
    "ConnectionLifecycle",
    "ConnectionStats",
]
