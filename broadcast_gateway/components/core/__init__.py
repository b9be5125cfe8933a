from broadcast_gateway.components.core.constants import (
    EventType,
    IDENTITY_PREFIX,
    WSCloseCode,
    WSConstants,
)

__all__ = ["EventType", "IDENTITY_PREFIX", "WSCloseCode", "WSConstants"]
