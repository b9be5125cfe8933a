"""
Utilities module: Exceptions.
"""

from broadcast_shared.utils.exceptions import (
    BroadcastError,
    InboundFrameError,
    ServerUnavailableError,
)

__all__ = [
    "BroadcastError",
    "InboundFrameError",
    "ServerUnavailableError",
]
