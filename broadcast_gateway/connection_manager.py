"""
WebSocket Connection Manager.

Thin orchestrator that composes the connection components:
- ConnectionRegistry: Identities and the active session table
- ConnectionLifecycle: Connect/disconnect logic
- ConnectionBroadcaster: Sender-excluding fan-out
- ConnectionStats: Statistics aggregation
"""

from __future__ import annotations

import asyncio
from typing import Any, TYPE_CHECKING

from broadcast_shared.config.logging import get_logger
from broadcast_shared.config.settings import Settings, settings as default_settings
from broadcast_gateway.components.core.constants import WSCloseCode
from broadcast_gateway.components.metrics.collector import MetricsCollector
from broadcast_gateway.core.connection import (
    ConnectionBroadcaster,
    ConnectionLifecycle,
    ConnectionRegistry,
    ConnectionSession,
    ConnectionStats,
)

if TYPE_CHECKING:
    from fastapi import WebSocket
    from broadcast_gateway.components.events.types import Message

logger = get_logger(__name__)

__all__ = ["ConnectionManager"]


class ConnectionManager:
    """
    Manages relay connections and message fan-out.

    One instance per server process; the FastAPI app keeps it on
    `app.state.manager`.

    Configuration from settings:
    - ws_max_total_connections: Global connection limit (default: 1000)
    - ws_outbound_queue_size: Frames pending per peer (default: 100)
    - ws_write_timeout: Seconds per write before a peer is dropped (default: 5)
    - ws_shutdown_drain_timeout: Seconds to flush a peer on shutdown (default: 2)
    - ws_accept_timeout: Seconds for the WebSocket handshake (default: 5)
    """

    def __init__(self, config: Settings | None = None) -> None:
        """Initialize the connection manager with composed components."""
        self._config = config or default_settings

        self._metrics = MetricsCollector()
        self._registry = ConnectionRegistry()

        self._lifecycle = ConnectionLifecycle(
            registry=self._registry,
            metrics=self._metrics,
            max_total_connections=self._config.ws_max_total_connections,
            outbound_queue_size=self._config.ws_outbound_queue_size,
            write_timeout=self._config.ws_write_timeout,
            drain_timeout=self._config.ws_shutdown_drain_timeout,
        )

        self._broadcaster = ConnectionBroadcaster(
            registry=self._registry,
            metrics=self._metrics,
        )

        self._stats = ConnectionStats(
            registry=self._registry,
            metrics=self._metrics,
            get_total_connections=lambda: self._lifecycle.total_connections,
            get_pending_drops=lambda: self._broadcaster.pending_drops,
            max_total_connections=self._config.ws_max_total_connections,
        )

    # =========================================================================
    # Public properties
    # =========================================================================

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def active_connections(self) -> int:
        """Number of sessions currently registered."""
        return self._registry.size

    # =========================================================================
    # Connection management (delegate to lifecycle)
    # =========================================================================

    async def connect(self, websocket: "WebSocket") -> ConnectionSession:
        """Accept and register a new WebSocket connection."""
        return await self._lifecycle.connect(
            websocket, timeout=self._config.ws_accept_timeout
        )

    async def disconnect(
        self,
        session: ConnectionSession,
        code: int = WSCloseCode.NORMAL,
        reason: str = "",
    ) -> None:
        """Close a session and remove it from the registry."""
        await self._lifecycle.disconnect(session, code=code, reason=reason)

    def record_malformed_frame(self) -> None:
        self._metrics.increment_malformed_frames()

    # =========================================================================
    # Broadcast (delegate to broadcaster)
    # =========================================================================

    async def deliver(self, message: "Message") -> int:
        """Send a message to every connected client except its sender."""
        return await self._broadcaster.deliver(message)

    # =========================================================================
    # Statistics (delegate to stats)
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        """Get connection statistics."""
        return self._stats.get_stats()

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def shutdown(self) -> int:
        """
        Graceful shutdown.

        Refuses new connections, lets every session flush what is already
        queued for it, closes it with GOING_AWAY and waits for background
        drops. Safe to call more than once.

        Returns:
            Number of sessions closed by this call.
        """
        first_call = not self._lifecycle.is_shutdown
        self._lifecycle.set_shutdown(True)

        sessions = await self._registry.snapshot_all()
        if first_call:
            logger.info("Connection manager shutting down...", active=len(sessions))

        results = await asyncio.gather(
            *[
                session.close(WSCloseCode.GOING_AWAY, "Server shutdown", drain=True)
                for session in sessions
            ],
            return_exceptions=True,
        )
        for session, result in zip(sessions, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Error closing session during shutdown",
                    identity=session.identity,
                    error=str(result),
                )

        await self._broadcaster.await_pending()

        closed = sum(1 for r in results if not isinstance(r, Exception))
        if first_call:
            logger.info("Connection manager shutdown complete", closed=closed)
        return closed

    def is_shutting_down(self) -> bool:
        """Check if the manager is in shutdown mode."""
        return self._lifecycle.is_shutdown
