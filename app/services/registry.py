from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class RegistryEntry(Generic[T]):
    value: T
    expires_at: float


class ClientRegistry(Generic[T]):
    """Per-client objects that expire after ttl_s without use, with max size eviction."""

    def __init__(self, *, ttl_s: float, max_size: int, factory: Callable[[str], T]) -> None:
        self.ttl_s = ttl_s
        self.max_size = max_size
        self._factory = factory
        self._store: Dict[str, RegistryEntry[T]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._store)

    def get(self, client_id: str) -> Optional[T]:
        now = time.monotonic()
        with self._lock:
            entry = self._store.get(client_id)
            if entry is None:
                return None
            if entry.expires_at < now:
                self._store.pop(client_id, None)
                return None
            entry.expires_at = now + self.ttl_s
            return entry.value

    def get_or_create(self, client_id: str) -> T:
        existing = self.get(client_id)
        if existing is not None:
            return existing
        value = self._factory(client_id)
        now = time.monotonic()
        with self._lock:
            self._purge_expired(now)
            if len(self._store) >= self.max_size:
                self._evict_oldest()
            self._store[client_id] = RegistryEntry(value=value, expires_at=now + self.ttl_s)
        return value

    def values(self) -> list[T]:
        with self._lock:
            return [entry.value for entry in self._store.values()]

    def _purge_expired(self, now: float) -> None:
        expired_keys = [key for key, entry in self._store.items() if entry.expires_at < now]
        for key in expired_keys:
            self._store.pop(key, None)

    def _evict_oldest(self) -> None:
        if not self._store:
            return
        oldest_key = min(self._store.items(), key=lambda item: item[1].expires_at)[0]
        self._store.pop(oldest_key, None)
