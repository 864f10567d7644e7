# chatline/core/registry.py

import threading
from typing import Any, Optional

from chatline.utils.logger import logger


class ConnectionRegistry:
    """
    Maps a user id to at most one live connection handle.

    The table is only reachable through these methods; every access goes
    through one lock, which is never held while doing I/O on a handle.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._connections: dict[str, Any] = {}

    def register(self, user_id: str, handle: Any) -> Optional[Any]:
        """
        Make `handle` the user's connection.

        Returns the handle it replaced, if any, so the caller can close it.
        Registering the handle that is already current changes nothing.
        """
        with self._lock:
            previous = self._connections.get(user_id)
            if previous is handle:
                return None
            self._connections[user_id] = handle

        if previous is not None:
            logger.info("Connection superseded", extra={"user_id": user_id})
        return previous

    def unregister(self, user_id: str, handle: Any = None) -> bool:
        """
        Drop the user's entry.

        With `handle`, only drops it when that handle is still the current
        one, so a stale connection closing never evicts its replacement.
        """
        with self._lock:
            current = self._connections.get(user_id)
            if current is None:
                return False
            if handle is not None and current is not handle:
                return False
            del self._connections[user_id]
        return True

    def lookup(self, user_id: str) -> Optional[Any]:
        with self._lock:
            return self._connections.get(user_id)

    def online_users(self) -> list[str]:
        with self._lock:
            return sorted(self._connections)

    def __contains__(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._connections

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)
