"""
Connection Statistics.

Aggregates statistics from the connection components for the health
endpoint.
"""

from __future__ import annotations

from typing import Any, Callable, TYPE_CHECKING

if TYPE_CHECKING:
    from broadcast_gateway.components.metrics.collector import MetricsCollector
    from broadcast_gateway.core.connection.registry import ConnectionRegistry


class ConnectionStats:
    """Aggregates connection statistics from components."""

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector",
        get_total_connections: Callable[[], int],
        get_pending_drops: Callable[[], int],
        max_total_connections: int,
    ) -> None:
        """
        Args:
            registry: Table of active sessions
            metrics: Collects connection metrics
            get_total_connections: Callback to get admitted connection count
            get_pending_drops: Callback to get in-flight drop count
            max_total_connections: Maximum allowed connections
        """
        self._registry = registry
        self._metrics = metrics
        self._get_total_connections = get_total_connections
        self._get_pending_drops = get_pending_drops
        self._max_total_connections = max_total_connections

    def get_stats(self) -> dict[str, Any]:
        total = self._get_total_connections()
        return {
            "active_connections": self._registry.size,
            "total_connections": total,
            "max_connections": self._max_total_connections,
            "utilization_percent": round(
                total / max(1, self._max_total_connections) * 100, 1
            ),
            "pending_drops": self._get_pending_drops(),
            "metrics": self._metrics.get_snapshot(),
        }
