"""
Relay WebSocket Endpoint.

Drives one connection from admission to teardown:
1. Register with the ConnectionManager (accept + identity)
2. Read loop: decode frames, relay sendMessage bodies, answer pings
3. Disconnect on client close, malformed frame, or session close
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from fastapi import WebSocket, WebSocketDisconnect

from broadcast_gateway.components.core.constants import EventType, WSCloseCode
from broadcast_gateway.components.events.types import (
    InboundEvent,
    Message,
    parse_inbound,
    pong_payload,
)
from broadcast_shared.config.logging import (
    bind_connection,
    get_logger,
    preview_body,
    unbind_connection,
)
from broadcast_shared.utils.exceptions import InboundFrameError

if TYPE_CHECKING:
    from broadcast_gateway.connection_manager import ConnectionManager
    from broadcast_gateway.core.connection.session import ConnectionSession

logger = get_logger(__name__)


class RelayEndpoint:
    """
    Handler for one relay connection.

    Usage:
        endpoint = RelayEndpoint(websocket, manager)
        await endpoint.run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        endpoint_name: str = "/ws",
    ):
        """
        Args:
            websocket: The WebSocket connection.
            manager: ConnectionManager instance.
            endpoint_name: Name for logging.
        """
        self.websocket = websocket
        self.manager = manager
        self.endpoint_name = endpoint_name

        self.session: "ConnectionSession | None" = None
        self._close_code: int = WSCloseCode.NORMAL
        self._close_reason = ""

    @property
    def identity(self) -> str:
        if self.session is None or self.session.identity is None:
            return "unknown"
        return self.session.identity

    async def run(self) -> None:
        """Main entry point: admit, read until done, tear down."""
        try:
            self.session = await self.manager.connect(self.websocket)
        except ConnectionError as e:
            logger.warning(
                "Connection rejected",
                endpoint=self.endpoint_name,
                reason=str(e),
            )
            await self._reject()
            return
        except Exception as e:
            logger.error(
                "Unexpected error during connection",
                endpoint=self.endpoint_name,
                error=str(e),
                exc_info=True,
            )
            return

        token = bind_connection(self.session.identity)
        try:
            await self._message_loop()
        except WebSocketDisconnect as e:
            logger.debug(
                "Client closed connection",
                identity=self.identity,
                code=e.code,
            )
        except Exception as e:
            logger.error(
                "Unexpected error in session",
                identity=self.identity,
                error=str(e),
                exc_info=True,
            )
            self._close_code = WSCloseCode.SERVER_ERROR
            self._close_reason = "Internal error"
        finally:
            await self.manager.disconnect(
                self.session, code=self._close_code, reason=self._close_reason
            )
            unbind_connection(token)

    async def _reject(self) -> None:
        """Close a connection that was refused admission."""
        if self.manager.is_shutting_down():
            code, reason = WSCloseCode.GOING_AWAY, "Server shutting down"
        else:
            code, reason = WSCloseCode.SERVER_OVERLOADED, "Server unavailable"
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.debug("Failed to close rejected websocket", error=str(e))

    async def _message_loop(self) -> None:
        while self.session.is_active:
            try:
                data = await self._receive()
                if data is None:
                    break
                event = parse_inbound(data)
            except InboundFrameError as e:
                self.manager.record_malformed_frame()
                logger.warning(
                    "Malformed frame, dropping connection",
                    identity=self.identity,
                    reason=str(e),
                    **e.context,
                )
                self._close_code = WSCloseCode.UNSUPPORTED_DATA
                self._close_reason = "Malformed frame"
                break

            await self.handle_event(event)

    async def _receive(self) -> str | None:
        """
        Wait for the next text frame.

        Returns None once the session closes from the other side (shutdown,
        stalled writer), so the loop does not keep reading a dead session.
        """
        receive_task = asyncio.create_task(self.websocket.receive_text())
        closed_task = asyncio.create_task(self.session.wait_closed())
        try:
            done, _ = await asyncio.wait(
                {receive_task, closed_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (receive_task, closed_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(receive_task, closed_task, return_exceptions=True)

        if closed_task in done and not closed_task.cancelled():
            return None

        try:
            return receive_task.result()
        except KeyError:
            # Starlette has no "text" key for binary frames
            raise InboundFrameError("Binary frames are not supported")

    async def handle_event(self, event: InboundEvent) -> None:
        """Act on one decoded client frame."""
        if event.type == EventType.SEND_MESSAGE:
            logger.info(
                "Message received",
                identity=self.identity,
                body=preview_body(event.body),
            )
            await self.manager.deliver(Message(sender_identity=self.identity, body=event.body))
            return

        if event.type == EventType.PING:
            try:
                self.session.enqueue(pong_payload())
            except asyncio.QueueFull:
                logger.warning("Outbound queue full on pong, dropping", identity=self.identity)
                await self.manager.disconnect(
                    self.session, code=WSCloseCode.POLICY_VIOLATION, reason="Outbound queue full"
                )
