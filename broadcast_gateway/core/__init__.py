"""
Broadcast Gateway Core Module.

- connection/: Registry, session state machine, broadcasting, lifecycle, stats
"""

from broadcast_gateway.core.connection import (
    ConnectionRegistry,
    ConnectionSession,
    SessionState,
    ConnectionBroadcaster,
    ConnectionLifecycle,
    ConnectionStats,
    is_ws_connected,
)

__all__ = [
    "ConnectionRegistry",
    "ConnectionSession",
    "SessionState",
    "ConnectionBroadcaster",
    "ConnectionLifecycle",
    "ConnectionStats",
    "is_ws_connected",
]
