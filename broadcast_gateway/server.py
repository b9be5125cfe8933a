"""
Process entry point for the relay: runs the app under uvicorn.

uvicorn stops its listeners and then fails every open WebSocket with
1012 when it shuts down. RelayServer closes the relay sessions first, so
clients get a drained queue and a 1001 close instead.
"""

from __future__ import annotations

import socket

import uvicorn

from broadcast_gateway.connection_manager import ConnectionManager
from broadcast_gateway.main import create_app
from broadcast_shared.config.logging import get_logger
from broadcast_shared.config.settings import Settings, settings as default_settings

logger = get_logger(__name__)


class RelayServer(uvicorn.Server):
    """uvicorn server that shuts the relay sessions down before its own teardown."""

    def __init__(self, config: uvicorn.Config, manager: ConnectionManager) -> None:
        super().__init__(config)
        self.manager = manager

    async def shutdown(self, sockets: list[socket.socket] | None = None) -> None:
        # Stop listening before the drain so no new client slips in
        for server in self.servers:
            server.close()
        for sock in sockets or []:
            sock.close()

        try:
            await self.manager.shutdown()
        except Exception as e:
            logger.error("Error closing relay sessions", error=str(e), exc_info=True)
        await super().shutdown(sockets=sockets)

    @property
    def bound_port(self) -> int | None:
        """Port actually bound (useful when started on port 0)."""
        for server in self.servers:
            for sock in server.sockets:
                return sock.getsockname()[1]
        return None


def build_server(
    host: str,
    port: int,
    config: Settings | None = None,
) -> RelayServer:
    """Wire a ConnectionManager, the app and uvicorn together."""
    config = config or default_settings
    manager = ConnectionManager(config)
    app = create_app(manager, config)

    uvicorn_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        ws_max_size=config.ws_max_message_size,
        timeout_graceful_shutdown=int(config.ws_graceful_shutdown_timeout),
        log_config=None,
        lifespan="on",
    )
    return RelayServer(uvicorn_config, manager)


def run_server(host: str, port: int, config: Settings | None = None) -> int:
    """
    Run the relay until interrupted.

    A bind failure makes uvicorn log the error and exit with status 1
    before anything is served.

    Returns:
        Process exit code.
    """
    server = build_server(host, port, config)
    logger.info("Binding broadcast server", host=host, port=port)
    try:
        server.run()
    except KeyboardInterrupt:
        # uvicorn re-raises the captured SIGINT once shutdown has finished
        pass
    return 0 if server.started else 1
