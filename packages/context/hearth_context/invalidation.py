"""
Targeted invalidation of group-scoped caches.

Consumers register callbacks that drop whatever they cached for a group. The
context manager calls ``invalidate`` with the previous group id when the active
group changes.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Coroutine

import structlog

from .metrics import MetricsCollector

log = structlog.get_logger()

InvalidationHandler = Callable[[str], Coroutine[Any, Any, None]]

DEFAULT_TTL_SECONDS = 300.0


class InvalidationRegistry:
    """Registry of per-group invalidation callbacks."""

    def __init__(self, metrics: MetricsCollector | None = None) -> None:
        self._handlers: list[InvalidationHandler] = []
        self._metrics = metrics

    def register(self, handler: InvalidationHandler) -> Callable[[], None]:
        """Register a handler; returns a function that unregisters it."""
        self._handlers.append(handler)

        def unregister() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unregister

    def __len__(self) -> int:
        return len(self._handlers)

    async def invalidate(self, group_id: str) -> int:
        """Run every handler for ``group_id``. Returns the number that failed."""
        failed = 0
        for handler in list(self._handlers):
            try:
                await handler(group_id)
            except Exception:
                failed += 1
                log.exception("invalidation.handler_error", group_id=group_id)
        if failed and self._metrics:
            self._metrics.inc("invalidation_errors_total", failed)
        log.debug("invalidation.done", group_id=group_id, handlers=len(self._handlers), failed=failed)
        return failed


@dataclass
class _CacheEntry:
    data: Any
    stored_at: float
    ttl: float


class GroupScopedCache:
    """In-memory TTL cache whose keys are scoped to a group id."""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[tuple[str, str], _CacheEntry] = {}
        self._default_ttl = default_ttl
        self._clock = clock

    def set(self, group_id: str, key: str, data: Any, ttl: float | None = None) -> None:
        self._entries[(group_id, key)] = _CacheEntry(
            data=data,
            stored_at=self._clock(),
            ttl=self._default_ttl if ttl is None else ttl,
        )

    def get(self, group_id: str, key: str) -> Any | None:
        entry = self._entries.get((group_id, key))
        if entry is None:
            return None
        if self._clock() - entry.stored_at > entry.ttl:
            del self._entries[(group_id, key)]
            return None
        return entry.data

    def delete(self, group_id: str, key: str) -> None:
        self._entries.pop((group_id, key), None)

    def invalidate_group(self, group_id: str) -> int:
        """Drop every entry for ``group_id``. Returns the number removed."""
        stale = [k for k in self._entries if k[0] == group_id]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict[str, int]:
        now = self._clock()
        expired = sum(1 for e in self._entries.values() if now - e.stored_at > e.ttl)
        return {
            "total": len(self._entries),
            "active": len(self._entries) - expired,
            "expired": expired,
        }

    def attach(self, registry: InvalidationRegistry) -> Callable[[], None]:
        """Drop a group's entries whenever the registry invalidates it."""

        async def _on_invalidate(group_id: str) -> None:
            removed = self.invalidate_group(group_id)
            log.debug("cache.group_invalidated", group_id=group_id, removed=removed)

        return registry.register(_on_invalidate)
