"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.

The same settings object is read by `broadcast-server start` and
`broadcast-server connect`, so PORT set once applies to both sides.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


DEFAULT_PORT = 5001


class Settings(BaseSettings):
    """Application settings with defaults for development."""

    # Server endpoint
    port: int = DEFAULT_PORT
    host: str = "0.0.0.0"  # Interface the relay binds to
    client_host: str = "localhost"  # Host the interactive client dials

    # CORS for the HTTP side (health check). Comma-separated, "*" allows all.
    allowed_origins: str = "*"

    # Environment
    environment: str = "development"
    debug: bool = True

    # WebSocket transport
    ws_path: str = "/ws"
    ws_max_message_size: int = 64 * 1024  # 64 KB, enforced by uvicorn
    ws_accept_timeout: float = 5.0
    # Hard cap on simultaneous connections; admission beyond it is refused
    ws_max_total_connections: int = 1000

    # Outbound delivery (per recipient)
    ws_outbound_queue_size: int = 100  # Pending payloads before the peer is dropped
    ws_write_timeout: float = 5.0  # Seconds a single write may take
    ws_shutdown_drain_timeout: float = 2.0  # Seconds to flush a queue on close

    # uvicorn graceful shutdown window
    ws_graceful_shutdown_timeout: float = 10.0

    # Interactive client
    client_open_timeout: float = 5.0

    class Config:
        env_file = "config.env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def server_url(self, host: str | None = None, port: int | None = None) -> str:
        """WebSocket URL the interactive client connects to; arguments override settings."""
        return f"ws://{host or self.client_host}:{port or self.port}{self.ws_path}"

    def origins_list(self) -> list[str]:
        """Allowed CORS origins as a list."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    def validate_production_settings(self) -> list[str]:
        """
        Check settings that must be tightened before running in production.
        Returns a list of problems. Empty list means all checks pass.
        """
        errors = []

        if self.environment == "production":
            if self.debug:
                errors.append("DEBUG must be False in production")

            if "*" in self.origins_list():
                errors.append(
                    "ALLOWED_ORIGINS should list explicit domains in production, not '*'"
                )

        if not 0 < self.port < 65536:
            errors.append(f"PORT must be between 1 and 65535 (got {self.port})")

        if self.ws_outbound_queue_size < 1:
            errors.append("WS_OUTBOUND_QUEUE_SIZE must be at least 1")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
