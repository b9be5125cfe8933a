"""
Connection Registry.

The single process-wide table of active sessions, keyed by identity.

Every read and mutation runs under one asyncio.Lock, so a broadcast
snapshot never observes an entry mid-insertion or mid-removal.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import TYPE_CHECKING

from broadcast_gateway.components.core.constants import IDENTITY_PREFIX

if TYPE_CHECKING:
    from broadcast_gateway.core.connection.session import ConnectionSession


class ConnectionRegistry:
    """
    Assigns identities and tracks active sessions.

    Identities come from a counter that only moves forward, so an identity
    is never handed to a second connection, even after the first one left.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, "ConnectionSession"] = {}
        self._counter = itertools.count(1)
        self._lock = asyncio.Lock()

    @property
    def size(self) -> int:
        """Number of active sessions."""
        return len(self._sessions)

    def identities(self) -> list[str]:
        """Identities currently registered (unordered)."""
        return list(self._sessions)

    def get(self, identity: str) -> "ConnectionSession | None":
        return self._sessions.get(identity)

    def __contains__(self, identity: object) -> bool:
        return identity in self._sessions

    async def register(self, session: "ConnectionSession") -> str:
        """
        Allocate the next identity, activate the session and insert it.

        Args:
            session: A session in the connecting state.

        Returns:
            The identity assigned, e.g. "Client#3".
        """
        async with self._lock:
            identity = f"{IDENTITY_PREFIX}{next(self._counter)}"
            session.activate(identity)
            self._sessions[identity] = session
            return identity

    async def deregister(self, identity: str | None) -> bool:
        """
        Remove a session by identity.

        Unknown or already removed identities are ignored, so duplicate
        close notifications are harmless.

        Returns:
            True if an entry was removed.
        """
        if identity is None:
            return False
        async with self._lock:
            return self._sessions.pop(identity, None) is not None

    async def snapshot_others(self, exclude_identity: str) -> list["ConnectionSession"]:
        """
        Point-in-time copy of every active session except one.

        The returned list is owned by the caller; later registry changes do
        not affect it.
        """
        async with self._lock:
            return [
                session
                for identity, session in self._sessions.items()
                if identity != exclude_identity
            ]

    async def snapshot_all(self) -> list["ConnectionSession"]:
        """Point-in-time copy of every active session."""
        async with self._lock:
            return list(self._sessions.values())
