"""Shared state management for MCP server.

FastMCP's Context is per-request, so we need a shared state mechanism
to keep the latest analytics result available across tool calls.
"""

import threading
from typing import Any


class SharedState:
    """Thread-safe shared state storage for MCP tools.

    Uses threading.RLock for thread-safe access to shared data.
    Implements basic size-based eviction to prevent unbounded memory growth.

    Protected keys (the latest analytics result and its metadata) are only
    evicted as a last resort when all keys in the store are protected.
    """

    MAX_ITEMS = 100

    PROTECTED_KEYS = frozenset({"order_result", "order_result_metadata"})

    def __init__(self):
        self._store: dict[str, Any] = {}
        self._lock = threading.RLock()

    def set(self, key: str, value: Any) -> None:
        """Store a value, evicting the oldest unprotected key when full."""
        with self._lock:
            if len(self._store) >= self.MAX_ITEMS and key not in self._store:
                victim = next(
                    (k for k in self._store if k not in self.PROTECTED_KEYS),
                    next(iter(self._store)),
                )
                del self._store[victim]
            self._store[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._store.get(key, default)

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._store

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def keys(self) -> list[str]:
        """Get all keys in shared state (copy, not live view)."""
        with self._lock:
            return list(self._store.keys())


# Global shared state instance
_shared_state = SharedState()


def get_shared_state() -> SharedState:
    """Get the global shared state instance."""
    return _shared_state
