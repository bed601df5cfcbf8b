"""Cache-aware fetch orchestration.

Usage example:
    from topic_research.application.fetch import CacheOptions, CachedFetcher

    fetcher = CachedFetcher(cache=cache, locks=locks, fresh_ttl_hours=1.0)
    result = fetcher.fetch(key, lambda: client.post_json(url, body), options=CacheOptions())
    if result.rate_limited:
        print(result.note)

Order of preference for one logical query:
1. fresh cache
2. fresh cache written by whoever held the per-key lock while we waited
3. a live call, written through to the cache on success
4. stale cache, only when the live call hit a transient rate limit
Anything else is raised. The fetcher never knows which provider it is calling.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Self

from ..exceptions import RateLimitError
from ..observability import get_logger
from ..protocols import Cache, LockManager
from ..types import CacheHit, JsonValue, Provenance

logger = get_logger("topic_research.application.fetch")

STALE_NOTE = "Using older cached data due to rate limiting."


@dataclass(frozen=True)
class CacheOptions:
    """Per-run cache switches (from --refresh / --no-cache)."""

    skip_read: bool = False
    skip_write: bool = False

    @classmethod
    def from_flags(cls, *, refresh: bool = False, no_cache: bool = False) -> Self:
        return cls(skip_read=refresh or no_cache, skip_write=no_cache)


@dataclass(frozen=True)
class FetchResult:
    """A payload plus where it came from."""

    payload: JsonValue
    provenance: Provenance
    age_hours: float | None = None
    rate_limited: bool = False

    @property
    def from_cache(self) -> bool:
        return self.provenance is not Provenance.LIVE

    @property
    def note(self) -> str | None:
        if self.provenance is Provenance.STALE:
            return STALE_NOTE
        return None

    @classmethod
    def from_hit(cls, hit: CacheHit, provenance: Provenance) -> Self:
        return cls(
            payload=hit.payload,
            provenance=provenance,
            age_hours=hit.age_hours,
            rate_limited=provenance is Provenance.STALE,
        )


class CachedFetcher:
    """Composes the cache store, lock manager and a caller-supplied live call."""

    def __init__(
        self,
        *,
        cache: Cache,
        locks: LockManager,
        fresh_ttl_hours: float = 1.0,
        max_lock_wait_seconds: float = 5.0,
    ) -> None:
        self.cache = cache
        self.locks = locks
        self.fresh_ttl_hours = fresh_ttl_hours
        self.max_lock_wait_seconds = max_lock_wait_seconds

    def _fresh(
        self,
        key: str,
        ttl_hours: float,
        usable: Callable[[JsonValue], bool] | None,
    ) -> CacheHit | None:
        hit = self.cache.read_with_age(key, ttl_hours)
        if hit is None or (usable is not None and not usable(hit.payload)):
            return None
        return hit

    def fetch(
        self,
        key: str,
        perform_live_call: Callable[[], JsonValue],
        *,
        options: CacheOptions | None = None,
        fresh_ttl_hours: float | None = None,
        max_lock_wait_seconds: float | None = None,
        usable: Callable[[JsonValue], bool] | None = None,
    ) -> FetchResult:
        """Return the payload for `key`, calling `perform_live_call` only when needed.

        Args:
            key: Cache key for the logical query.
            perform_live_call: Performs the upstream request; may raise HttpError.
            options: Cache read/write switches for this run.
            fresh_ttl_hours: Overrides the fetcher's fresh TTL.
            max_lock_wait_seconds: Overrides the fetcher's lock wait.
            usable: Predicate a payload must pass to be served from, or written to, cache.

        Raises:
            RateLimitError: Non-retryable 429, or a retryable one with no stale entry.
            HttpError: Any other failure from the live call.
        """
        opts = options or CacheOptions()
        ttl = self.fresh_ttl_hours if fresh_ttl_hours is None else fresh_ttl_hours
        wait = (
            self.max_lock_wait_seconds if max_lock_wait_seconds is None else max_lock_wait_seconds
        )

        if not opts.skip_read:
            hit = self._fresh(key, ttl, usable)
            if hit is not None:
                return FetchResult.from_hit(hit, Provenance.FRESH)

        lock_acquired = False
        try:
            if not opts.skip_read:
                lock_acquired = self.locks.acquire(key, wait)
                if not lock_acquired:
                    logger.debug("Cache lock busy for %s; continuing without it", key)
                # Whoever held the lock may have just written the entry.
                hit = self._fresh(key, ttl, usable)
                if hit is not None:
                    return FetchResult.from_hit(hit, Provenance.FRESH)

            try:
                payload = perform_live_call()
            except RateLimitError as exc:
                if not exc.retryable or opts.skip_read:
                    raise
                stale = self.cache.read_stale(key)
                if stale is None or (usable is not None and not usable(stale.payload)):
                    raise
                logger.warning(
                    "Rate limited after %s attempts; serving cached data %.1fh old",
                    exc.attempts,
                    stale.age_hours,
                )
                return FetchResult.from_hit(stale, Provenance.STALE)

            if not opts.skip_write and (usable is None or usable(payload)):
                if not self.cache.write(key, payload):
                    logger.debug("Results for %s were not cached this run", key)
            return FetchResult(payload=payload, provenance=Provenance.LIVE)
        finally:
            if lock_acquired:
                self.locks.release(key)
