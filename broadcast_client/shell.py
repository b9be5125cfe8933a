"""
Interactive client for the broadcast relay.

Reads lines from stdin and sends each non-empty one as a message; prints
messages relayed from other clients above the "> " prompt.

stdin is read on a daemon thread that feeds an asyncio.Queue, so a
blocked read never keeps the process alive after disconnecting.
"""

from __future__ import annotations

import asyncio
import json
import sys
import threading
from typing import Any, TextIO

import websockets
from rich.console import Console

from broadcast_gateway.components.core.constants import EventType
from broadcast_shared.config.logging import get_logger
from broadcast_shared.config.settings import settings
from broadcast_shared.utils.exceptions import ServerUnavailableError

logger = get_logger(__name__)

CLEAR_LINE = "\r\x1b[K"


class InteractiveShell:
    """
    One human-driven relay connection.

    Usage:
        shell = InteractiveShell("ws://localhost:5001/ws")
        asyncio.run(shell.run())
    """

    PROMPT = "> "

    def __init__(
        self,
        url: str,
        console: Console | None = None,
        input_stream: TextIO | None = None,
        open_timeout: float | None = None,
    ) -> None:
        self.url = url
        self.console = console or Console()
        self.identity: str | None = None
        self._input = input_stream if input_stream is not None else sys.stdin
        self._open_timeout = open_timeout if open_timeout is not None else settings.client_open_timeout
        self._prompting = False

    # =========================================================================
    # Output
    # =========================================================================

    def _prompt(self) -> None:
        self._prompting = True
        self.console.file.write(self.PROMPT)
        self.console.file.flush()

    def show(self, text: str) -> None:
        """Print a line without leaving the prompt half-overwritten."""
        self.console.file.write(CLEAR_LINE)
        self.console.print(text, markup=False, highlight=False, emoji=False)
        if self._prompting:
            self._prompt()

    def handle_frame(self, raw: str | bytes) -> None:
        """Render one frame received from the server."""
        try:
            frame: Any = json.loads(raw)
        except (json.JSONDecodeError, TypeError, UnicodeDecodeError):
            logger.debug("Ignoring undecodable frame from server")
            return
        if not isinstance(frame, dict):
            return

        frame_type = frame.get("type")
        if frame_type == EventType.RECEIVE_MESSAGE:
            self.show(f"📢 [{frame.get('senderIdentity')}]: {frame.get('body')}")
        elif frame_type == EventType.WELCOME:
            self.identity = frame.get("identity")
            self.show(f"🪪 You are {self.identity}")

    # =========================================================================
    # Connection
    # =========================================================================

    async def run(self) -> int:
        """
        Connect, then relay stdin and server frames until either side ends.

        Returns:
            Exit code (0 on a normal disconnect).

        Raises:
            ServerUnavailableError: If the connection cannot be opened.
        """
        try:
            websocket = await websockets.connect(self.url, open_timeout=self._open_timeout)
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            raise ServerUnavailableError(str(e) or type(e).__name__, url=self.url) from e

        self.console.print("✅ Connected to broadcast server!", markup=False, emoji=False)
        self.console.print("💬 You can now type messages and press Enter to send them.", markup=False, emoji=False)
        self.console.print("🚪 Press Ctrl+C to disconnect.\n", markup=False, emoji=False)

        reader = asyncio.create_task(self._read_loop(websocket), name="shell_reader")
        sender = asyncio.create_task(self._input_loop(websocket), name="shell_input")
        try:
            await asyncio.wait({reader, sender}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            self.show("👋 Disconnecting from server...")
            raise
        finally:
            self._prompting = False
            for task in (reader, sender):
                task.cancel()
            await asyncio.gather(reader, sender, return_exceptions=True)
            await websocket.close()

        return 0

    async def _read_loop(self, websocket) -> None:
        try:
            async for raw in websocket:
                self.handle_frame(raw)
        except websockets.exceptions.ConnectionClosed as e:
            logger.debug("Connection closed by server", error=str(e))
        self._prompting = False
        self.show("❌ Disconnected from server")

    async def _input_loop(self, websocket) -> None:
        lines: asyncio.Queue[str | None] = asyncio.Queue()
        self._start_stdin_reader(asyncio.get_running_loop(), lines)

        self._prompt()
        while True:
            line = await lines.get()
            if line is None:
                self._prompting = False
                self.show("👋 Disconnecting from server...")
                return

            message = line.strip()
            if message:
                await websocket.send(
                    json.dumps({"type": EventType.SEND_MESSAGE, "body": message})
                )
            self._prompt()

    def _start_stdin_reader(
        self,
        loop: asyncio.AbstractEventLoop,
        lines: "asyncio.Queue[str | None]",
    ) -> None:
        def pump() -> None:
            try:
                for line in self._input:
                    loop.call_soon_threadsafe(lines.put_nowait, line)
                loop.call_soon_threadsafe(lines.put_nowait, None)
            except RuntimeError:
                # Event loop already closed; the shell is gone
                return

        threading.Thread(target=pump, name="stdin_reader", daemon=True).start()
