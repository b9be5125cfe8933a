"""
Relay event types.

Wire frames are JSON objects discriminated by their `type` field:

    Client -> Server   {"type": "sendMessage", "body": "hello"}
                       {"type": "ping"}
    Server -> Client   {"type": "welcome", "identity": "Client#1"}
                       {"type": "receiveMessage", "senderIdentity": "Client#1", "body": "hello"}
                       {"type": "pong"}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from broadcast_gateway.components.core.constants import EventType
from broadcast_shared.utils.exceptions import InboundFrameError


@dataclass(frozen=True, slots=True)
class Message:
    """
    One relayed message. Exists only for the duration of a delivery.

    Attributes:
        sender_identity: Identity of the originating connection.
        body: Opaque text payload, passed through unmodified.
    """

    sender_identity: str
    body: str

    def to_payload(self) -> dict[str, Any]:
        """Build the receiveMessage frame sent to recipients."""
        return {
            "type": EventType.RECEIVE_MESSAGE,
            "senderIdentity": self.sender_identity,
            "body": self.body,
        }


@dataclass(frozen=True, slots=True)
class InboundEvent:
    """A decoded client frame."""

    type: str
    body: str | None = None


def welcome_payload(identity: str) -> dict[str, Any]:
    """Frame telling a freshly admitted client its identity."""
    return {"type": EventType.WELCOME, "identity": identity}


def pong_payload() -> dict[str, Any]:
    return {"type": EventType.PONG}


def parse_inbound(data: str) -> InboundEvent:
    """
    Decode a text frame received from a client.

    Args:
        data: Raw text frame.

    Returns:
        The decoded event.

    Raises:
        InboundFrameError: If the frame is not a JSON object, has an unknown
            type, or a sendMessage frame has no string body.
    """
    try:
        frame = json.loads(data)
    except (json.JSONDecodeError, TypeError) as e:
        raise InboundFrameError("Frame is not valid JSON", error=str(e)) from e

    if not isinstance(frame, dict):
        raise InboundFrameError("Frame must be a JSON object")

    event_type = frame.get("type")

    if event_type == EventType.SEND_MESSAGE:
        body = frame.get("body")
        if not isinstance(body, str):
            raise InboundFrameError(
                "sendMessage frame requires a string body",
                body_type=type(body).__name__,
            )
        return InboundEvent(type=EventType.SEND_MESSAGE, body=body)

    if event_type == EventType.PING:
        return InboundEvent(type=EventType.PING)

    raise InboundFrameError("Unknown frame type", frame_type=event_type)
