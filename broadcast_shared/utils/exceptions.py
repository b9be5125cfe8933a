"""
Exceptions shared by the relay server and the interactive client.

Usage:
    from broadcast_shared.utils.exceptions import InboundFrameError

    raise InboundFrameError("Frame is not valid JSON", raw=data)
"""

from typing import Any


class BroadcastError(Exception):
    """
    Base exception for the broadcast relay.

    Keeps keyword context next to the message so callers can pass it
    straight to a structured logger.
    """

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class InboundFrameError(BroadcastError):
    """
    A client sent a frame the relay cannot decode.

    The session that received it is dropped; the server keeps running.
    """


class ServerUnavailableError(BroadcastError):
    """
    The interactive client could not reach the relay.

    Usage:
        raise ServerUnavailableError("Connection refused", url=url)
    """

    def __init__(self, message: str, url: str, **context: Any):
        super().__init__(message, url=url, **context)
        self.url = url
