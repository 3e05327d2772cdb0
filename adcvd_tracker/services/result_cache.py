from __future__ import annotations

import copy
import json
import time
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Awaitable, Callable, Protocol

from adcvd_tracker.services.logger import logger

CACHE_VERSION = 1


@dataclass(slots=True)
class CacheEntry:
    key: str
    payload: Any
    timestamp: float


class ResultCache(Protocol):
    def get(self, key: str) -> CacheEntry | None: ...

    def set(self, key: str, payload: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryTTLCache:
    """Process-local TTL map; stale entries are dropped when read."""

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = max(float(ttl_seconds), 0.0)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= self.ttl_seconds:
            self.delete(key)
            return None
        return CacheEntry(key=entry.key, payload=copy.deepcopy(entry.payload), timestamp=entry.timestamp)

    def set(self, key: str, payload: Any) -> None:
        self._entries[key] = CacheEntry(key=key, payload=copy.deepcopy(payload), timestamp=self._clock())

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()


def options_digest(options: dict[str, Any]) -> str:
    material = json.dumps(options, sort_keys=True, default=str, ensure_ascii=True)
    return sha256(f"v{CACHE_VERSION}|{material}".encode("utf-8")).hexdigest()[:16]


def build_cache_key(pipeline: str, hts_code: str, year: str, options: dict[str, Any]) -> str:
    return f"{pipeline}:{hts_code}:{year}:{options_digest(options)}"


async def cached_run(
    cache: ResultCache,
    key: str,
    compute: Callable[[], Awaitable[Any]],
) -> tuple[Any, bool]:
    """Return ``(payload, cache_hit)``; exceptions from ``compute`` are never cached."""
    entry = cache.get(key)
    if entry is not None:
        logger.debug(f"Result cache hit: {key}")
        return entry.payload, True
    payload = await compute()
    cache.set(key, payload)
    return payload, False
