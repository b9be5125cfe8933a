from broadcast_gateway.components.events.types import (
    InboundEvent,
    Message,
    parse_inbound,
    pong_payload,
    welcome_payload,
)

__all__ = ["InboundEvent", "Message", "parse_inbound", "pong_payload", "welcome_payload"]
