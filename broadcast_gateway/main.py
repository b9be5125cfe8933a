"""
Broadcast Gateway main application.

Relays every message a client sends to all other connected clients.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from broadcast_gateway import __version__
from broadcast_gateway.components.endpoints.relay import RelayEndpoint
from broadcast_gateway.connection_manager import ConnectionManager
from broadcast_shared.config.logging import get_logger
from broadcast_shared.config.settings import Settings, settings as default_settings

logger = get_logger(__name__)


def create_app(
    manager: ConnectionManager | None = None,
    config: Settings | None = None,
) -> FastAPI:
    """
    Build the relay application.

    Args:
        manager: Connection manager to use; a fresh one is created if omitted.
        config: Settings to use; defaults to the process settings.
    """
    config = config or default_settings
    manager = manager or ConnectionManager(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Log startup; on exit close every session gracefully."""
        logger.info(
            "Starting broadcast server",
            port=config.port,
            env=config.environment,
        )

        yield

        logger.info("Shutting down broadcast server")
        await manager.shutdown()
        logger.info("Server closed. Goodbye!")

    app = FastAPI(
        title="Broadcast Server",
        description="Real-time relay that rebroadcasts each client's messages to all others",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.manager = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.origins_list(),
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.get("/health")
    def health_check():
        """Basic health check endpoint."""
        try:
            stats = manager.get_stats()
        except Exception as e:
            logger.warning("Failed to get stats in health check", error=str(e))
            stats = {"error": "stats_unavailable"}
        return {
            "status": "shutting_down" if manager.is_shutting_down() else "healthy",
            "service": "broadcast-server",
            "version": app.version,
            "environment": config.environment,
            **stats,
        }

    @app.websocket(config.ws_path)
    async def relay_websocket(websocket: WebSocket):
        """WebSocket endpoint shared by every relay client."""
        endpoint = RelayEndpoint(websocket, manager, endpoint_name=config.ws_path)
        await endpoint.run()

    return app
