"""Round-robin API key selection shared by every in-flight request."""
from __future__ import annotations
import threading
from typing import Iterable

from gemini_relay.common.errors import ConfigurationError


class CredentialRotator:
    """Hands out keys from a fixed pool in strict rotation.

    The read-then-advance of the cursor happens under a lock, so concurrent
    callers never share a slot or skip one.
    """

    def __init__(self, credentials: Iterable[str]) -> None:
        self._pool: tuple[str, ...] = tuple(credentials)
        if not self._pool:
            raise ConfigurationError("Credential pool must contain at least one key")
        self._lock = threading.Lock()
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._pool)

    @property
    def cursor(self) -> int:
        """Index of the key the next call will receive."""
        with self._lock:
            return self._cursor

    def next_slot(self) -> tuple[int, str]:
        """Return ``(index, key)`` for this dispatch and advance the cursor."""
        with self._lock:
            index = self._cursor
            self._cursor = (index + 1) % len(self._pool)
        return index, self._pool[index]

    def next(self) -> str:
        return self.next_slot()[1]
