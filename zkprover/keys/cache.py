"""TTL cache for resolved signing keys."""

import time
from collections.abc import Callable
from typing import Protocol

from zkprover.core.settings import KEY_CACHE_TTL_DEFAULT
from zkprover.keys.types import ResolvedKey


class KeyCache(Protocol):
    """Storage for resolved keys keyed by ``(provider, key_id)``."""

    def get(self, provider: str, key_id: str) -> ResolvedKey | None: ...

    def put(self, key: ResolvedKey) -> None: ...

    def invalidate(self, provider: str, key_id: str | None = None) -> None: ...

    def entries(self) -> list[ResolvedKey]: ...


class InMemoryKeyCache:
    """Process-local key cache with lazy expiry.

    Entries are immutable and replaced whole, so concurrent readers never see
    a partially written key; the last concurrent refresh wins.
    """

    def __init__(
        self,
        ttl_seconds: int = KEY_CACHE_TTL_DEFAULT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, str], ResolvedKey] = {}

    def get(self, provider: str, key_id: str) -> ResolvedKey | None:
        key = self._entries.get((provider, key_id))
        if key is None:
            return None
        if self._clock() - key.fetched_at >= self.ttl_seconds:
            self._entries.pop((provider, key_id), None)
            return None
        return key

    def put(self, key: ResolvedKey) -> None:
        self._entries[(key.provider, key.key_id)] = key

    def invalidate(self, provider: str, key_id: str | None = None) -> None:
        if key_id is not None:
            self._entries.pop((provider, key_id), None)
            return
        for cache_key in [k for k in self._entries if k[0] == provider]:
            self._entries.pop(cache_key, None)

    def entries(self) -> list[ResolvedKey]:
        """Return unexpired entries; expired ones are left for lazy eviction."""
        now = self._clock()
        return [
            k for k in list(self._entries.values()) if now - k.fetched_at < self.ttl_seconds
        ]
