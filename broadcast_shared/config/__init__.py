"""
Configuration module: Settings and logging.
"""

from broadcast_shared.config.settings import settings, get_settings, DEFAULT_PORT
from broadcast_shared.config.logging import get_logger, setup_logging

__all__ = [
    # settings
    "settings",
    "get_settings",
    "DEFAULT_PORT",
    # logging
    "get_logger",
    "setup_logging",
]
