"""
Connection Broadcaster.

Fans one sender's message out to every other active session.

deliver() is a synchronous loop over a registry snapshot: each recipient
gets the frame on its own outbound queue, and the actual socket writes
happen in the recipients' writer tasks. A recipient whose queue is full
is closed in the background; nobody else waits for it.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from broadcast_gateway.components.core.constants import WSCloseCode, WSConstants
from broadcast_shared.config.logging import bind_connection, get_logger, preview_body

if TYPE_CHECKING:
    from broadcast_gateway.components.events.types import Message
    from broadcast_gateway.components.metrics.collector import MetricsCollector
    from broadcast_gateway.core.connection.registry import ConnectionRegistry
    from broadcast_gateway.core.connection.session import ConnectionSession

logger = get_logger(__name__)


class ConnectionBroadcaster:
    """
    Delivers messages to all sessions except the sender.

    Ordering: a sender's endpoint awaits deliver() for one message before
    reading the next, and every recipient drains a single FIFO queue, so
    messages from one sender arrive in the order they were sent.
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector",
    ) -> None:
        self._registry = registry
        self._metrics = metrics
        self._pending_drops: set[asyncio.Task] = set()

    @property
    def pending_drops(self) -> int:
        """Recipients currently being closed for falling behind."""
        return len(self._pending_drops)

    async def deliver(self, message: "Message") -> int:
        """
        Hand a message to every active session except its sender.

        Never raises because of a recipient: a stalled recipient is
        scheduled for closing and skipped.

        Returns:
            Number of recipients the message was queued for.
        """
        recipients = await self._registry.snapshot_others(message.sender_identity)
        payload = message.to_payload()

        sent = 0
        dropped = 0
        for session in recipients:
            try:
                if session.enqueue(payload):
                    sent += 1
            except asyncio.QueueFull:
                dropped += 1
                self._schedule_drop(session)

        self._metrics.record_broadcast(recipients=sent, dropped=dropped)

        if dropped:
            logger.warning(
                "Broadcast skipped stalled recipients",
                sender=message.sender_identity,
                sent=sent,
                dropped=dropped,
            )
        else:
            logger.debug(
                "Broadcast delivered",
                sender=message.sender_identity,
                recipients=sent,
                body=preview_body(message.body),
            )

        return sent

    def _schedule_drop(self, session: "ConnectionSession") -> None:
        """Close a recipient that fell behind, without waiting for it."""
        task = asyncio.create_task(
            self._drop(session),
            name=f"drop_session:{session.identity}",
        )
        self._pending_drops.add(task)
        task.add_done_callback(self._pending_drops.discard)

    @staticmethod
    async def _drop(session: "ConnectionSession") -> None:
        # Runs in a copy of the sender's context; log under the recipient
        bind_connection(session.identity)
        await session.close(WSCloseCode.POLICY_VIOLATION, "Outbound queue full")

    async def await_pending(self, timeout: float = WSConstants.DROP_TASK_TIMEOUT) -> None:
        """Wait for scheduled drops to finish (used during shutdown)."""
        if not self._pending_drops:
            return
        done, pending = await asyncio.wait(set(self._pending_drops), timeout=timeout)
        if pending:
            logger.warning("Drop tasks still running after timeout", remaining=len(pending))
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.warning("Drop task failed", error=str(task.exception()))
