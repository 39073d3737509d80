"""
Group-scoped resources that follow the active context.

A GroupResource reloads its data whenever the active group id or the refresh
counter changes, and only ever exposes data loaded for the current group.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, TypeVar

import structlog

from .manager import ActiveContextManager, ContextSnapshot

log = structlog.get_logger()

T = TypeVar("T")

Loader = Callable[[str], Awaitable[T]]


class GroupResource(Generic[T]):
    """
    Dependent view data bound to an ActiveContextManager.

    ``cache_key`` enables the manager's shared GroupScopedCache for this
    resource, if the manager has one.
    """

    def __init__(
        self,
        manager: ActiveContextManager,
        loader: Loader[T],
        name: str = "resource",
        cache_key: str | None = None,
    ):
        self._manager = manager
        self._loader = loader
        self._name = name
        self._cache_key = cache_key

        self._data: T | None = None
        self._group_id: str | None = None
        self._error: str | None = None
        self._seen: tuple[str | None, int] | None = None
        self._load_count = 0
        self._task: asyncio.Task | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def data(self) -> T | None:
        """Loaded data, or None while it does not match the active group."""
        snapshot = self._manager.snapshot
        if snapshot.is_loading or snapshot.is_switching:
            return None
        if self._group_id is None or self._group_id != snapshot.active_group_id:
            return None
        return self._data

    @property
    def group_id(self) -> str | None:
        return self._group_id

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def loading(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def load_count(self) -> int:
        return self._load_count

    async def start(self) -> None:
        """Subscribe to the manager and load for the current snapshot."""
        if self._unsubscribe is None:
            self._unsubscribe = self._manager.subscribe(self._on_snapshot)
        await self._on_snapshot(self._manager.snapshot)

    async def stop(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        await self._cancel()

    async def wait(self) -> None:
        """Wait for the in-flight load, if any."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _on_snapshot(self, snapshot: ContextSnapshot) -> None:
        if snapshot.is_loading or snapshot.is_switching:
            return

        seen = (snapshot.active_group_id, snapshot.refresh_counter)
        if seen == self._seen:
            return
        self._seen = seen

        if snapshot.active_group_id is None:
            await self._cancel()
            self._data = None
            self._group_id = None
            self._error = None
            return

        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.create_task(self._load(snapshot.active_group_id))

    async def _cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def _load(self, group_id: str) -> None:
        cache = self._manager.cache if self._cache_key else None
        data = cache.get(group_id, self._cache_key) if cache else None

        if data is None:
            try:
                data = await self._loader(group_id)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._data = None
                self._group_id = None
                self._error = str(exc)
                log.warning("resource.load_failed", resource=self._name, group_id=group_id, error=str(exc))
                return
            self._load_count += 1
            if cache is not None:
                cache.set(group_id, self._cache_key, data)

        if group_id != self._manager.snapshot.active_group_id:
            log.debug("resource.discarded", resource=self._name, group_id=group_id)
            return

        self._data = data
        self._group_id = group_id
        self._error = None
        log.debug("resource.loaded", resource=self._name, group_id=group_id)
