from broadcast_gateway.components.endpoints.relay import RelayEndpoint

__all__ = ["RelayEndpoint"]
