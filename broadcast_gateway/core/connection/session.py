"""
Connection Session.

Wraps one WebSocket and owns everything written to it: an outbound FIFO
queue fed by the broadcaster and a single writer task that drains it.

States:
    connecting -> active -> closed

`closed` is terminal. Closing runs the close callback (deregistration)
exactly once, however many times and from wherever close() is called.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, TYPE_CHECKING

from starlette.websockets import WebSocketState

from broadcast_gateway.components.core.constants import WSCloseCode, WSConstants
from broadcast_gateway.components.events.types import welcome_payload
from broadcast_shared.config.logging import bind_connection, get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket
    from broadcast_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)

_STOP = object()


def is_ws_connected(ws: "WebSocket") -> bool:
    """
    Check if WebSocket is in connected state before sending.

    Starlette only exposes CONNECTING, CONNECTED and DISCONNECTED, so a
    socket may still look connected briefly after the peer went away.
    """
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


class SessionState(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSED = "closed"


class ConnectionSession:
    """
    Per-connection state machine and outbound writer.

    Writes are bounded: each send gets `write_timeout` seconds and the
    queue holds at most `outbound_queue_size` frames. A peer that cannot
    keep up is closed instead of holding anything else up.
    """

    def __init__(
        self,
        websocket: "WebSocket",
        metrics: "MetricsCollector",
        on_closed: Callable[["ConnectionSession"], Awaitable[None]] | None = None,
        outbound_queue_size: int = WSConstants.OUTBOUND_QUEUE_SIZE,
        write_timeout: float = WSConstants.WS_WRITE_TIMEOUT,
        drain_timeout: float = WSConstants.SHUTDOWN_DRAIN_TIMEOUT,
    ) -> None:
        """
        Args:
            websocket: Accepted WebSocket, owned by this session from now on.
            metrics: Collector for write timeouts.
            on_closed: Awaited once when the session starts closing.
            outbound_queue_size: Max frames pending for this peer.
            write_timeout: Seconds allowed for a single send.
            drain_timeout: Seconds a draining close waits for the queue.
        """
        self.websocket = websocket
        self.identity: str | None = None
        self._metrics = metrics
        self._on_closed = on_closed
        self._write_timeout = write_timeout
        self._drain_timeout = drain_timeout

        self._state = SessionState.CONNECTING
        self._closing = False
        self._closed_event = asyncio.Event()
        self._outbound: asyncio.Queue[Any] = asyncio.Queue(maxsize=outbound_queue_size)
        self._writer_task: asyncio.Task | None = None

    def __repr__(self) -> str:
        return f"<ConnectionSession {self.identity or '?'} {self._state.value}>"

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        """Active and not closing."""
        return self._state is SessionState.ACTIVE and not self._closing

    @property
    def pending(self) -> int:
        """Frames queued but not yet written."""
        return self._outbound.qsize()

    def activate(self, identity: str) -> None:
        """
        Move from connecting to active and start the writer.

        The welcome frame is queued before anything else can be, so it is
        always the first frame a client sees.
        """
        if self._state is not SessionState.CONNECTING:
            raise RuntimeError(f"Cannot activate session in state {self._state.value}")

        self.identity = identity
        self._state = SessionState.ACTIVE
        self._outbound.put_nowait(welcome_payload(identity))
        self._writer_task = asyncio.create_task(
            self._writer_loop(), name=f"session_writer:{identity}"
        )

    def enqueue(self, payload: dict[str, Any]) -> bool:
        """
        Queue a frame for this peer without waiting.

        Returns:
            False if the session is no longer active.

        Raises:
            asyncio.QueueFull: The peer has too many frames pending.
        """
        if not self.is_active:
            return False
        self._outbound.put_nowait(payload)
        return True

    async def wait_closed(self) -> None:
        """Wait until close() has finished."""
        await self._closed_event.wait()

    async def close(
        self,
        code: int = WSCloseCode.NORMAL,
        reason: str = "",
        drain: bool = False,
    ) -> None:
        """
        Close the session. Only the first call has any effect.

        Args:
            code: WebSocket close code sent to the peer.
            reason: Close reason sent to the peer.
            drain: Let the writer flush frames already queued (bounded by
                drain_timeout) before the socket is closed.
        """
        if self._closing:
            return
        self._closing = True

        try:
            if self._on_closed is not None:
                await self._on_closed(self)
        finally:
            self._state = SessionState.CLOSED
            await self._stop_writer(drain)
            await self._close_transport(code, reason)
            self._closed_event.set()

    async def _stop_writer(self, drain: bool) -> None:
        writer = self._writer_task
        if writer is None or writer.done() or writer is asyncio.current_task():
            return

        if drain:
            try:
                self._outbound.put_nowait(_STOP)
            except asyncio.QueueFull:
                # Writer exits on its own once the queue is empty
                pass
            done, _ = await asyncio.wait({writer}, timeout=self._drain_timeout)
            if done:
                return
            logger.warning(
                "Outbound queue not drained before close",
                identity=self.identity,
                pending=self._outbound.qsize(),
            )

        writer.cancel()
        await asyncio.gather(writer, return_exceptions=True)

    async def _close_transport(self, code: int, reason: str) -> None:
        if not is_ws_connected(self.websocket):
            return
        try:
            await asyncio.wait_for(
                self.websocket.close(code=code, reason=reason),
                timeout=self._write_timeout,
            )
        except Exception as e:
            logger.debug("Failed to close websocket", identity=self.identity, error=str(e))

    async def _writer_loop(self) -> None:
        """Forward queued frames to the socket in order."""
        bind_connection(self.identity)
        while True:
            if self._closing and self._outbound.empty():
                return

            payload = await self._outbound.get()
            if payload is _STOP:
                return

            try:
                await asyncio.wait_for(
                    self.websocket.send_json(payload),
                    timeout=self._write_timeout,
                )
            except asyncio.TimeoutError:
                self._metrics.increment_write_timeouts()
                logger.warning(
                    "Write timed out, dropping connection",
                    identity=self.identity,
                    timeout=self._write_timeout,
                )
                await self.close(WSCloseCode.POLICY_VIOLATION, "Write timeout")
                return
            except Exception as e:
                logger.debug("Send failed", identity=self.identity, error=str(e))
                await self.close(WSCloseCode.GOING_AWAY, "Write failed")
                return
