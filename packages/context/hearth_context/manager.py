"""
Active-group context manager.

Owns the single active membership for the signed-in user and publishes every
change as an immutable ContextSnapshot. Coordinates:
- MembershipStore: loads the membership list
- PreferenceStore: remembers the last chosen group per user
- select_active: picks the active membership
- InvalidationRegistry: drops caches for a group that stopped being active

Every mutating operation runs under one lock, so refetches and switches never
interleave. Consumers watch ``refresh_counter``: it increases by one whenever
the active group id changes and on every ``force_refresh()``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Coroutine

import httpx
import structlog

from hearth_shared.permissions import Capability, derive_permissions
from hearth_shared.schemas.common import Role
from hearth_shared.schemas.memberships import Group, Membership

from .config import HearthConfig
from .errors import AuthenticationRequired, FetchFailed, InvalidSwitchTarget
from .invalidation import GroupScopedCache, InvalidationRegistry
from .membership_store import MembershipStore
from .metrics import MetricsCollector
from .preferences import PreferenceStore
from .selector import select_active
from .session import Session

log = structlog.get_logger()

FETCH_FAILED_MESSAGE = "Failed to load your households. Please try again."

PermissionDeriver = Callable[[Role], frozenset[Capability]]


class ContextStatus(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class ContextSnapshot:
    """Point-in-time view of the active context. Never mutated in place."""

    status: ContextStatus = ContextStatus.UNAUTHENTICATED
    memberships: tuple[Membership, ...] = ()
    active_membership: Membership | None = None
    permissions: frozenset[Capability] = frozenset()
    is_loading: bool = False
    is_switching: bool = False
    error: str | None = None
    refresh_counter: int = 0

    @property
    def active_group(self) -> Group | None:
        return self.active_membership.group if self.active_membership else None

    @property
    def active_role(self) -> Role | None:
        return self.active_membership.role if self.active_membership else None

    @property
    def active_group_id(self) -> str | None:
        return self.active_membership.group.group_id if self.active_membership else None

    def has_permission(self, capability: Capability) -> bool:
        return capability in self.permissions

    def has_role(self, *roles: Role) -> bool:
        return self.active_role is not None and self.active_role in roles

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "active_group_id": self.active_group_id,
            "active_group": self.active_group.model_dump(mode="json") if self.active_group else None,
            "active_role": self.active_role.value if self.active_role else None,
            "permissions": sorted(c.value for c in self.permissions),
            "memberships": [m.model_dump(mode="json") for m in self.memberships],
            "is_loading": self.is_loading,
            "is_switching": self.is_switching,
            "error": self.error,
            "refresh_counter": self.refresh_counter,
        }


SnapshotHandler = Callable[[ContextSnapshot], Coroutine[Any, Any, None]]


class ActiveContextManager:
    """
    Long-lived owner of the active context for one application session.

    Handlers registered with ``subscribe`` are awaited after every commit, in
    registration order. They must return quickly and must not call the
    manager's mutating operations.
    """

    def __init__(
        self,
        store: MembershipStore,
        preferences: PreferenceStore,
        invalidation: InvalidationRegistry | None = None,
        metrics: MetricsCollector | None = None,
        permissions: PermissionDeriver = derive_permissions,
        cache: GroupScopedCache | None = None,
    ):
        self._store = store
        self._preferences = preferences
        self._metrics = metrics or MetricsCollector()
        self._invalidation = invalidation or InvalidationRegistry(self._metrics)
        self._derive_permissions = permissions
        self._cache = cache
        if cache is not None:
            cache.attach(self._invalidation)

        self._session: Session | None = None
        self._snapshot = ContextSnapshot()
        self._lock = asyncio.Lock()
        self._handlers: list[SnapshotHandler] = []
        self._pending: set[asyncio.Task] = set()

    @classmethod
    def from_config(
        cls,
        config: HearthConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "ActiveContextManager":
        metrics = MetricsCollector()
        store = MembershipStore(
            base_url=config.membership_api.url,
            memberships_path=config.membership_api.memberships_path,
            verify_tls=config.membership_api.verify_tls,
            request_timeout=config.membership_api.request_timeout_seconds,
            transport=transport,
        )
        return cls(
            store=store,
            preferences=PreferenceStore(config.preferences.db_path),
            invalidation=InvalidationRegistry(metrics),
            metrics=metrics,
            cache=GroupScopedCache(default_ttl=config.cache.ttl_seconds),
        )

    @property
    def snapshot(self) -> ContextSnapshot:
        return self._snapshot

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def preferences(self) -> PreferenceStore:
        return self._preferences

    @property
    def invalidation(self) -> InvalidationRegistry:
        return self._invalidation

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def cache(self) -> GroupScopedCache | None:
        return self._cache

    async def open(self) -> None:
        await self._store.open()
        await self._preferences.open()

    async def close(self) -> None:
        await self.drain()
        await self._store.close()
        await self._preferences.close()

    def subscribe(self, handler: SnapshotHandler) -> Callable[[], None]:
        """Register a snapshot handler; returns a function that unregisters it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def drain(self) -> None:
        """Wait for background cache invalidations to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # --- Session lifecycle ---

    async def sign_in(self, session: Session) -> ContextSnapshot:
        async with self._lock:
            if self._session is not None and self._session.user_id != session.user_id:
                await self._reset("user_changed")
            self._session = session
            log.info("context.signed_in", user_id=session.user_id)
            return await self._refetch()

    async def sign_out(self) -> ContextSnapshot:
        async with self._lock:
            await self._reset("signed_out")
            return self._snapshot

    # --- Operations ---

    async def initialize(self) -> ContextSnapshot:
        return await self.refetch()

    async def refetch(self) -> ContextSnapshot:
        async with self._lock:
            return await self._refetch()

    async def switch_active(self, group_id: str) -> ContextSnapshot:
        """Make ``group_id`` the active group. It must be one of the loaded memberships."""
        async with self._lock:
            current = self._snapshot
            target = next(
                (m for m in current.memberships if m.group.group_id == group_id),
                None,
            )
            if target is None:
                self._metrics.inc("switch_rejected_total")
                log.warning(
                    "context.switch_rejected",
                    group_id=group_id,
                    active_group_id=current.active_group_id,
                )
                await self._commit(
                    replace(current, is_switching=False, error=str(InvalidSwitchTarget(group_id)))
                )
                return self._snapshot

            self._metrics.inc("switch_total")
            await self._commit(replace(current, is_switching=True, error=None))

            if self._session is not None:
                await self._preferences.write_preferred(self._session.user_id, group_id)

            await self._commit(self._with_active(self._snapshot, target, is_switching=False))
            log.info(
                "context.switched",
                group_id=group_id,
                previous_group_id=current.active_group_id,
                refresh_counter=self._snapshot.refresh_counter,
            )
            return self._snapshot

    async def force_refresh(self) -> ContextSnapshot:
        """Signal dependents to refetch without changing the active group."""
        async with self._lock:
            current = self._snapshot
            self._metrics.inc("force_refresh_total")
            if current.active_group_id is not None:
                # Shared cache synchronously, other handlers in the background
                if self._cache is not None:
                    self._cache.invalidate_group(current.active_group_id)
                self._schedule_invalidation(current.active_group_id)
            await self._commit(replace(current, refresh_counter=current.refresh_counter + 1))
            log.info(
                "context.force_refresh",
                group_id=current.active_group_id,
                refresh_counter=self._snapshot.refresh_counter,
            )
            return self._snapshot

    # --- Internals (lock held) ---

    async def _refetch(self) -> ContextSnapshot:
        self._metrics.inc("refetch_total")
        previous = self._snapshot
        await self._commit(
            replace(previous, status=ContextStatus.LOADING, is_loading=True, error=None)
        )

        try:
            memberships = await self._store.load_memberships(self._session)
        except AuthenticationRequired:
            log.info("context.unauthenticated")
            await self._reset("authentication_required")
            return self._snapshot
        except FetchFailed as exc:
            self._metrics.inc("refetch_failed_total")
            log.warning("context.fetch_failed", error=str(exc), status=exc.status_code)
            await self._commit(
                self._with_active(
                    self._snapshot,
                    None,
                    status=ContextStatus.ERROR,
                    memberships=(),
                    is_loading=False,
                    error=FETCH_FAILED_MESSAGE,
                )
            )
            return self._snapshot
        except asyncio.CancelledError:
            log.info("context.refetch_cancelled")
            await self._commit(
                replace(
                    self._snapshot,
                    status=previous.status,
                    is_loading=False,
                    error=previous.error,
                )
            )
            raise
        except Exception:
            self._metrics.inc("refetch_failed_total")
            log.exception("context.refetch_error")
            await self._commit(
                self._with_active(
                    self._snapshot,
                    None,
                    status=ContextStatus.ERROR,
                    memberships=(),
                    is_loading=False,
                    error=FETCH_FAILED_MESSAGE,
                )
            )
            raise

        preferred = None
        if self._session is not None:
            preferred = await self._preferences.read_preferred(self._session.user_id)
        if preferred is None:
            preferred = self._snapshot.active_group_id

        selected = select_active(memberships, preferred)
        await self._commit(
            self._with_active(
                self._snapshot,
                selected,
                status=ContextStatus.READY,
                memberships=tuple(memberships),
                is_loading=False,
                error=None,
            )
        )
        self._metrics.set_gauge("memberships_loaded", len(memberships))
        log.info(
            "context.loaded",
            memberships=len(memberships),
            active_group_id=self._snapshot.active_group_id,
            preferred_group_id=preferred,
            refresh_counter=self._snapshot.refresh_counter,
        )
        return self._snapshot

    async def _reset(self, reason: str) -> None:
        user_id = self._session.user_id if self._session else None
        self._session = None
        await self._commit(ContextSnapshot())
        self._metrics.set_gauge("memberships_loaded", 0)
        log.info("context.reset", reason=reason, user_id=user_id)

    def _with_active(
        self,
        base: ContextSnapshot,
        membership: Membership | None,
        **changes: Any,
    ) -> ContextSnapshot:
        """Apply ``membership`` as active, bumping the counter if the group id changed."""
        new_group_id = membership.group.group_id if membership else None
        counter = base.refresh_counter
        if new_group_id != base.active_group_id:
            counter += 1
        return replace(
            base,
            active_membership=membership,
            permissions=self._derive_permissions(membership.role) if membership else frozenset(),
            refresh_counter=counter,
            **changes,
        )

    async def _commit(self, snapshot: ContextSnapshot) -> None:
        previous = self._snapshot
        self._snapshot = snapshot
        self._metrics.set_gauge("refresh_counter", snapshot.refresh_counter)

        if (
            previous.active_group_id is not None
            and previous.active_group_id != snapshot.active_group_id
        ):
            self._schedule_invalidation(previous.active_group_id)

        for handler in list(self._handlers):
            try:
                await handler(snapshot)
            except Exception:
                log.exception("context.handler_error", status=snapshot.status.value)

    def _schedule_invalidation(self, group_id: str) -> None:
        task = asyncio.create_task(self._invalidation.invalidate(group_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
