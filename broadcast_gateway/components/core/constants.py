"""
Broadcast Gateway Constants.

Centralized constants with documentation explaining each value.
"""

from enum import IntEnum
from typing import Final

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "EventType",
    "IDENTITY_PREFIX",
]


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the gateway.

    Standard codes (1000-1999) from RFC 6455.
    """

    NORMAL = 1000  # Normal closure
    GOING_AWAY = 1001  # Server shutting down or client navigating away
    UNSUPPORTED_DATA = 1003  # Frame could not be decoded as a relay event
    POLICY_VIOLATION = 1008  # Generic policy violation (peer too slow)
    SERVER_ERROR = 1011  # Unexpected server error
    SERVER_OVERLOADED = 1013  # At connection capacity, try again later


class EventType:
    """Values of the `type` field in relay frames."""

    # Client -> Server
    SEND_MESSAGE: Final[str] = "sendMessage"
    PING: Final[str] = "ping"

    # Server -> Client
    RECEIVE_MESSAGE: Final[str] = "receiveMessage"
    WELCOME: Final[str] = "welcome"
    PONG: Final[str] = "pong"


# Identities are rendered as Client#1, Client#2, ...
IDENTITY_PREFIX: Final[str] = "Client#"


class WSConstants:
    """
    Gateway operational constants.

    These are defaults used when a component is built without settings.
    At runtime the ConnectionManager reads `broadcast_shared.config.settings`,
    which can override them via environment variables.
    """

    # WS_ACCEPT_TIMEOUT: 5 seconds
    # A WebSocket handshake should complete well within TCP timeouts.
    WS_ACCEPT_TIMEOUT: Final[float] = 5.0

    # WS_WRITE_TIMEOUT: 5 seconds
    # Upper bound for one send to a recipient. A peer that cannot take a
    # frame in this time is treated as stalled and dropped.
    WS_WRITE_TIMEOUT: Final[float] = 5.0

    # OUTBOUND_QUEUE_SIZE: 100 payloads
    # Pending frames per recipient before it is considered stalled.
    OUTBOUND_QUEUE_SIZE: Final[int] = 100

    # SHUTDOWN_DRAIN_TIMEOUT: 2 seconds
    # Time a closing session gets to flush frames already queued for it.
    SHUTDOWN_DRAIN_TIMEOUT: Final[float] = 2.0

    # MAX_TOTAL_CONNECTIONS: 1000
    MAX_TOTAL_CONNECTIONS: Final[int] = 1000

    # DROP_TASK_TIMEOUT: 5 seconds
    # Shutdown waits at most this long for scheduled drop tasks.
    DROP_TASK_TIMEOUT: Final[float] = 5.0
