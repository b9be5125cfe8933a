"""
Shared module for code used by both the relay server and the interactive client.

STRUCTURE:
- broadcast_shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging

- broadcast_shared.utils: Utilities
  - exceptions.py: Relay and client exceptions

IMPORT EXAMPLES:
    from broadcast_shared.config.settings import settings
    from broadcast_shared.config.logging import get_logger
    from broadcast_shared.utils.exceptions import InboundFrameError
"""
