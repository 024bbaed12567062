"""
In-process registry of live WebSocket connections.

Maps each user id to the set of channel names (one per open connection)
held by this process. PresenceService uses it to decide when a user goes
online (first connection) and offline (last connection closed).

The registry is volatile and never persisted. It is shared by every
consumer of the process, and consumers run their database work on worker
threads, so all access goes through a lock.

Usage:
    from chat.presence import registry

    first = registry.register(user.id, self.channel_name)
    last = registry.unregister(user.id, self.channel_name)
"""

from __future__ import annotations

import threading
from collections import defaultdict


class PresenceRegistry:
    """Thread-safe multi-map of user id -> open connection channel names."""

    def __init__(self):
        self._lock = threading.Lock()
        self._connections: dict[str, set[str]] = defaultdict(set)

    @staticmethod
    def _key(user_id) -> str:
        return str(user_id)

    def register(self, user_id, channel_name: str) -> bool:
        """
        Record an open connection.

        Returns:
            True if this is the user's first open connection
        """
        key = self._key(user_id)
        with self._lock:
            first = not self._connections.get(key)
            self._connections[key].add(channel_name)
            return first

    def unregister(self, user_id, channel_name: str) -> bool:
        """
        Forget a closed connection.

        Returns:
            True if the user has no open connections left
        """
        key = self._key(user_id)
        with self._lock:
            channels = self._connections.get(key)
            if channels is None:
                return True
            channels.discard(channel_name)
            if channels:
                return False
            del self._connections[key]
            return True


registry = PresenceRegistry()
