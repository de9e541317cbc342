from __future__ import annotations

import threading
from typing import Dict, Optional, Protocol


class KeyValueStore(Protocol):
    """Protocol describing the durable store required by the repository.

    Each call is atomic on its own; nothing spans several keys. Backends
    raise :class:`~recipe_api.errors.StorageError` when the store fails.
    """

    def get(self, key: str) -> Optional[bytes]:
        """Return the value stored under ``key`` or ``None`` if absent."""

    def set(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    def delete(self, key: str) -> None:
        """Remove ``key``. Deleting a missing key is not an error."""


class InMemoryKeyValueStore:
    """Process-local store for development and tests."""

    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


__all__ = ["KeyValueStore", "InMemoryKeyValueStore"]
