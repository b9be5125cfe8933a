"""
Connection Lifecycle Management.

Handles admission (accept + register) and teardown (deregister) of
WebSocket connections.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from broadcast_gateway.components.core.constants import WSCloseCode, WSConstants
from broadcast_gateway.core.connection.session import ConnectionSession
from broadcast_shared.config.logging import get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket
    from broadcast_gateway.components.metrics.collector import MetricsCollector
    from broadcast_gateway.core.connection.registry import ConnectionRegistry

logger = get_logger(__name__)


class ConnectionLifecycle:
    """
    Manages the lifecycle of WebSocket connections.

    Responsibilities:
    - Refuse admission while shutting down or at capacity
    - Accept the WebSocket and register a session for it
    - Deregister a session exactly once when it closes
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector",
        max_total_connections: int = WSConstants.MAX_TOTAL_CONNECTIONS,
        outbound_queue_size: int = WSConstants.OUTBOUND_QUEUE_SIZE,
        write_timeout: float = WSConstants.WS_WRITE_TIMEOUT,
        drain_timeout: float = WSConstants.SHUTDOWN_DRAIN_TIMEOUT,
    ) -> None:
        """
        Initialize lifecycle manager with dependencies.

        Args:
            registry: Table of active sessions
            metrics: Collects connection metrics
            max_total_connections: Global connection limit
            outbound_queue_size: Per-session outbound queue bound
            write_timeout: Per-write timeout for sessions
            drain_timeout: Queue flush timeout for draining closes
        """
        self._registry = registry
        self._metrics = metrics
        self._max_total_connections = max_total_connections
        self._outbound_queue_size = outbound_queue_size
        self._write_timeout = write_timeout
        self._drain_timeout = drain_timeout

        # Admitted connections, including ones still in the handshake
        self._total_connections = 0
        self._counter_lock = asyncio.Lock()
        self._shutdown = False

    @property
    def total_connections(self) -> int:
        """Current number of admitted connections."""
        return self._total_connections

    @property
    def is_shutdown(self) -> bool:
        """Whether shutdown has been initiated."""
        return self._shutdown

    def set_shutdown(self, value: bool) -> None:
        self._shutdown = value

    async def connect(
        self,
        websocket: "WebSocket",
        timeout: float = WSConstants.WS_ACCEPT_TIMEOUT,
    ) -> ConnectionSession:
        """
        Accept a WebSocket connection and register it.

        Args:
            websocket: The WebSocket to connect.
            timeout: Timeout for accepting the WebSocket.

        Returns:
            The active session, already holding its identity.

        Raises:
            ConnectionError: If the server is shutting down, at capacity,
                or the handshake fails.
        """
        if self._shutdown:
            self._metrics.increment_rejected_shutdown()
            raise ConnectionError("Server is shutting down")

        # Atomic check-and-increment for connection limit
        async with self._counter_lock:
            if self._total_connections >= self._max_total_connections:
                self._metrics.increment_rejected_limit()
                raise ConnectionError(
                    f"Server at capacity ({self._max_total_connections} connections)"
                )
            self._total_connections += 1

        try:
            await asyncio.wait_for(websocket.accept(), timeout=timeout)
        except asyncio.TimeoutError:
            await self._decrement_connection_count()
            raise ConnectionError("WebSocket accept timed out")
        except Exception as e:
            await self._decrement_connection_count()
            raise ConnectionError(f"WebSocket accept failed: {e}")

        session = ConnectionSession(
            websocket,
            self._metrics,
            on_closed=self._on_session_closed,
            outbound_queue_size=self._outbound_queue_size,
            write_timeout=self._write_timeout,
            drain_timeout=self._drain_timeout,
        )
        identity = await self._registry.register(session)
        self._metrics.increment_accepted()

        client = getattr(websocket, "client", None)
        logger.info(
            "Client connected",
            identity=identity,
            peer=f"{client.host}:{client.port}" if client else "unknown",
            total=self._registry.size,
        )
        return session

    async def disconnect(
        self,
        session: ConnectionSession,
        code: int = WSCloseCode.NORMAL,
        reason: str = "",
    ) -> None:
        """Close a session; a no-op if it is already closed."""
        await session.close(code=code, reason=reason)

    async def _on_session_closed(self, session: ConnectionSession) -> None:
        """Close callback handed to every session."""
        removed = await self._registry.deregister(session.identity)
        if not removed:
            return

        await self._decrement_connection_count()
        self._metrics.increment_closed()
        logger.info(
            "Client disconnected",
            identity=session.identity,
            total=self._registry.size,
        )

    async def _decrement_connection_count(self) -> None:
        """Safely decrement the connection counter."""
        async with self._counter_lock:
            self._total_connections = max(0, self._total_connections - 1)
