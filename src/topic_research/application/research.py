"""Concurrent source searches through the cache-aware fetcher.

Each source (Reddit, X, ...) is an independent `SourceSearch`. They run side by side
on a thread pool; a failure in one source becomes an error message on its outcome
and never cancels the others.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Self

from ..exceptions import HttpError, RateLimitError
from ..observability import get_logger
from ..types import JsonValue, Provenance
from .fetch import CacheOptions, CachedFetcher, FetchResult

logger = get_logger("topic_research.application.research")


@dataclass(frozen=True)
class SourceSearch:
    """One provider search: its name, cache key and the live call that runs it."""

    source: str
    cache_key: str
    perform_live_call: Callable[[], JsonValue]
    usable: Callable[[JsonValue], bool] | None = None


@dataclass(frozen=True)
class SourceOutcome:
    """What one source produced, for the renderer."""

    source: str
    payload: JsonValue | None
    error: str | None = None
    provenance: Provenance | None = None
    age_hours: float | None = None
    rate_limited: bool = False

    @property
    def from_cache(self) -> bool:
        return self.provenance in (Provenance.FRESH, Provenance.STALE)

    @property
    def used_stale_cache(self) -> bool:
        return self.provenance is Provenance.STALE

    @classmethod
    def from_fetch(cls, source: str, result: FetchResult) -> Self:
        return cls(
            source=source,
            payload=result.payload,
            provenance=result.provenance,
            age_hours=result.age_hours,
            rate_limited=result.rate_limited,
        )


def describe_failure(exc: HttpError) -> str:
    """User-facing message for a source that produced nothing."""
    if isinstance(exc, RateLimitError):
        if exc.retryable:
            return f"Rate limited after {exc.attempts} retries"
        return "Quota/billing limit reached (non-retryable 429)"
    return f"API error: {exc}"


def run_source_search(
    fetcher: CachedFetcher,
    search: SourceSearch,
    options: CacheOptions,
) -> SourceOutcome:
    try:
        result = fetcher.fetch(
            search.cache_key,
            search.perform_live_call,
            options=options,
            usable=search.usable,
        )
    except HttpError as exc:
        logger.warning("%s search failed: %s", search.source, exc)
        return SourceOutcome(
            source=search.source,
            payload=None,
            error=describe_failure(exc),
            rate_limited=isinstance(exc, RateLimitError),
        )
    return SourceOutcome.from_fetch(search.source, result)


def run_source_searches(
    fetcher: CachedFetcher,
    searches: Iterable[SourceSearch],
    options: CacheOptions | None = None,
    *,
    max_workers: int | None = None,
) -> dict[str, SourceOutcome]:
    """Run every search concurrently and return outcomes keyed by source."""
    opts = options or CacheOptions()
    pending = list(searches)
    if not pending:
        return {}
    workers = max_workers or len(pending)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="source-search") as pool:
        futures = {
            search.source: pool.submit(run_source_search, fetcher, search, opts)
            for search in pending
        }
        return {source: future.result() for source, future in futures.items()}


def _empty_sources() -> tuple[str, ...]:
    return ()


@dataclass(frozen=True)
class ResearchSummary:
    """Cache provenance across all sources of one research run."""

    any_from_cache: bool = False
    max_cache_age_hours: float | None = None
    rate_limited_sources: tuple[str, ...] = field(default_factory=_empty_sources)
    stale_sources: tuple[str, ...] = field(default_factory=_empty_sources)
    errors: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_outcomes(cls, outcomes: Mapping[str, SourceOutcome]) -> Self:
        ages = [
            outcome.age_hours
            for outcome in outcomes.values()
            if outcome.from_cache and outcome.age_hours is not None
        ]
        return cls(
            any_from_cache=any(outcome.from_cache for outcome in outcomes.values()),
            max_cache_age_hours=max(ages) if ages else None,
            rate_limited_sources=tuple(
                source for source, outcome in outcomes.items() if outcome.rate_limited
            ),
            stale_sources=tuple(
                source for source, outcome in outcomes.items() if outcome.used_stale_cache
            ),
            errors={
                source: outcome.error
                for source, outcome in outcomes.items()
                if outcome.error is not None
            },
        )
