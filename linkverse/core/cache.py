"""Shared read-through cache for links, collections and the user profile.

One instance is built by the DI container at startup and handed to every
service and route. Reads are served from memory while the entry for a kind
is younger than the freshness window; otherwise all three kinds are
refetched together through the data gateway.

Refresh protocol:
- Single-flight: overlapping callers await the same refresh task.
- Partial failure: a kind whose fetch failed keeps its previous value (or an
  empty default) while the other kinds update. A rejected session is not a
  partial failure: ``AuthRequired`` is raised to every waiter.
- Generation guard: ``invalidate()`` bumps a generation counter. A refresh
  that started under an older generation drops its results, so data fetched
  before a mutation can never repopulate the cache after it.
- Updates are applied in a single synchronous step with no await in between.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

from linkverse.core.config import Settings
from linkverse.core.errors import AuthRequired, NetworkOrServiceError
from linkverse.core.logging import get_logger, log_cache_operation
from linkverse.models.entities import EntityKind

if TYPE_CHECKING:
    from linkverse.services.gateway import RemoteDataGateway

logger = get_logger(__name__)

# A refresh discarded by a concurrent invalidate is retried at most this
# many times before the caller gets whatever the cache holds.
MAX_REFRESH_ATTEMPTS = 3


def _empty(kind: EntityKind) -> Any:
    return None if kind == EntityKind.PROFILE else []


@dataclass(frozen=True)
class CachedEntry:
    """Value for one kind plus when it was fetched.

    ``fetched_at is None`` means the kind has never been populated, which is
    different from a populated but empty list.
    """
    kind: EntityKind
    value: Any
    fetched_at: Optional[float] = None
    stale: bool = False

    @property
    def populated(self) -> bool:
        return self.fetched_at is not None


class SharedCache:
    """Time-bounded memoization of the three entity collections."""

    def __init__(self, gateway: "RemoteDataGateway", settings: Settings,
                 clock: Callable[[], float] = time.monotonic):
        self.gateway = gateway
        self.freshness_window = settings.cache_freshness_seconds
        self._clock = clock
        self._values: Dict[EntityKind, Any] = {}
        self._fetched_at: Dict[EntityKind, float] = {}
        self._generation = 0
        self._inflight: Optional[asyncio.Task] = None
        self._inflight_generation: Optional[int] = None

    @property
    def generation(self) -> int:
        return self._generation

    def _is_fresh(self, kind: EntityKind) -> bool:
        fetched_at = self._fetched_at.get(kind)
        return fetched_at is not None and self._clock() - fetched_at < self.freshness_window

    def peek(self, kind: EntityKind) -> CachedEntry:
        """Current entry for ``kind`` without touching the network."""
        kind = EntityKind(kind)
        fetched_at = self._fetched_at.get(kind)
        return CachedEntry(
            kind=kind,
            value=self._values.get(kind, _empty(kind)),
            fetched_at=fetched_at,
            stale=not self._is_fresh(kind),
        )

    async def get_or_refresh(self, kind: EntityKind) -> CachedEntry:
        """Return the entry for ``kind``, refreshing everything if it is stale."""
        kind = EntityKind(kind)
        for _ in range(MAX_REFRESH_ATTEMPTS):
            if self._is_fresh(kind):
                log_cache_operation(logger, "get", kind.value, hit=True)
                return self.peek(kind)

            log_cache_operation(logger, "get", kind.value, hit=False)
            applied = await self._join_refresh()
            if applied:
                break
        return self.peek(kind)

    def invalidate(self) -> None:
        """Drop every cached value and orphan any in-flight refresh."""
        self._generation += 1
        self._values.clear()
        self._fetched_at.clear()
        self._inflight = None
        self._inflight_generation = None
        log_cache_operation(logger, "invalidate", "all", generation=self._generation)

    async def _join_refresh(self) -> bool:
        """Await the current refresh, starting one if none is running.

        Returns True if the refresh applied its results.
        """
        if (self._inflight is None or self._inflight.done()
                or self._inflight_generation != self._generation):
            self._inflight_generation = self._generation
            self._inflight = asyncio.ensure_future(self._refresh(self._generation))
        task = self._inflight
        # shield: a cancelled caller must not cancel the refresh others await
        return await asyncio.shield(task)

    async def _refresh(self, generation: int) -> bool:
        results = await asyncio.gather(
            self.gateway.list(EntityKind.LINKS),
            self.gateway.list(EntityKind.COLLECTIONS),
            self.gateway.current_profile(),
            return_exceptions=True,
        )

        if generation != self._generation:
            logger.info("Discarding refresh superseded by invalidate",
                        started_generation=generation, current_generation=self._generation)
            return False

        if self._inflight_generation == generation:
            self._inflight = None
            self._inflight_generation = None

        for result in results:
            if isinstance(result, AuthRequired):
                logger.warning("Cache refresh rejected, session required", generation=generation)
                raise result

        now = self._clock()
        kinds = (EntityKind.LINKS, EntityKind.COLLECTIONS, EntityKind.PROFILE)
        failed = []
        for kind, result in zip(kinds, results):
            if isinstance(result, BaseException):
                if not isinstance(result, NetworkOrServiceError):
                    logger.error("Unexpected cache refresh failure", kind=kind.value,
                                 error=f"{type(result).__name__}: {result}")
                failed.append(kind.value)
                continue
            self._values[kind] = result
            self._fetched_at[kind] = now

        if failed:
            logger.warning("Cache refresh degraded, serving previous values",
                           failed_kinds=failed, generation=generation)
        else:
            log_cache_operation(logger, "refresh", "all", generation=generation)

        return True
