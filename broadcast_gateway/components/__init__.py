"""
Gateway components:
- core/: Close codes, event names, operational constants
- events/: Wire frame encoding and decoding
- endpoints/: WebSocket endpoint handler
- metrics/: Counters for observability
"""
