"""
Metrics Collector for the Broadcast Gateway.

Centralizes counters for observability. Every operation is a plain
increment under a threading lock, so the hot broadcast path never awaits.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any


@dataclass
class BroadcastMetrics:
    """Metrics for broadcast operations."""
    total: int = 0
    recipients_reached: int = 0
    recipients_dropped: int = 0
    without_recipients: int = 0


@dataclass
class ConnectionMetrics:
    """Metrics for connection management."""
    accepted: int = 0
    closed: int = 0
    rejected_limit: int = 0
    rejected_shutdown: int = 0
    write_timeouts: int = 0
    malformed_frames: int = 0


class MetricsCollector:
    """
    Thread-safe metrics collector for the gateway.

    Usage:
        metrics = MetricsCollector()
        metrics.record_broadcast(recipients=3, dropped=0)
        stats = metrics.get_snapshot()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._broadcast = BroadcastMetrics()
        self._connection = ConnectionMetrics()

    # ==========================================================================
    # Broadcast Metrics
    # ==========================================================================

    def record_broadcast(self, recipients: int, dropped: int = 0) -> None:
        """Record one deliver() call and its outcome."""
        with self._lock:
            self._broadcast.total += 1
            self._broadcast.recipients_reached += recipients
            self._broadcast.recipients_dropped += dropped
            if recipients == 0 and dropped == 0:
                self._broadcast.without_recipients += 1

    # ==========================================================================
    # Connection Metrics
    # ==========================================================================

    def increment_accepted(self) -> None:
        with self._lock:
            self._connection.accepted += 1

    def increment_closed(self) -> None:
        with self._lock:
            self._connection.closed += 1

    def increment_rejected_limit(self) -> None:
        """Connection refused because the gateway is at capacity."""
        with self._lock:
            self._connection.rejected_limit += 1

    def increment_rejected_shutdown(self) -> None:
        """Connection refused because the gateway is shutting down."""
        with self._lock:
            self._connection.rejected_shutdown += 1

    def increment_write_timeouts(self) -> None:
        with self._lock:
            self._connection.write_timeouts += 1

    def increment_malformed_frames(self) -> None:
        with self._lock:
            self._connection.malformed_frames += 1

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    def get_snapshot(self) -> dict[str, Any]:
        """
        Get a snapshot of all metrics.

        Metric names follow the pattern {category}_{metric}.
        """
        with self._lock:
            return {
                "broadcasts_total": self._broadcast.total,
                "broadcasts_recipients_reached": self._broadcast.recipients_reached,
                "broadcasts_recipients_dropped": self._broadcast.recipients_dropped,
                "broadcasts_without_recipients": self._broadcast.without_recipients,
                "connections_accepted": self._connection.accepted,
                "connections_closed": self._connection.closed,
                "connections_rejected_limit": self._connection.rejected_limit,
                "connections_rejected_shutdown": self._connection.rejected_shutdown,
                "connections_write_timeouts": self._connection.write_timeouts,
                "connections_malformed_frames": self._connection.malformed_frames,
            }
