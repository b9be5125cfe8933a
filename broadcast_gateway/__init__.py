"""
Broadcast Gateway: real-time relay server.

- main.py: FastAPI app factory (WebSocket endpoint, health check, lifespan)
- server.py: uvicorn runner with graceful relay shutdown
- connection_manager.py: Orchestrates the connection components
- core/connection/: Registry, session, broadcaster, lifecycle, stats
- components/: Constants, wire events, endpoint, metrics
"""

__version__ = "1.0.0"
