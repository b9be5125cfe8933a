"""
Interactive terminal client for the broadcast relay.
"""

from broadcast_client.shell import InteractiveShell

__all__ = ["InteractiveShell"]
