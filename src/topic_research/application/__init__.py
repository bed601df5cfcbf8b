"""Use cases built on the cache, lock and request layers."""

from .enrich import CachedEnricher, EnrichmentOutcome
from .fetch import STALE_NOTE, CacheOptions, CachedFetcher, FetchResult
from .research import (
    ResearchSummary,
    SourceOutcome,
    SourceSearch,
    describe_failure,
    run_source_search,
    run_source_searches,
)

__all__ = [
    "STALE_NOTE",
    "CacheOptions",
    "CachedEnricher",
    "CachedFetcher",
    "EnrichmentOutcome",
    "FetchResult",
    "ResearchSummary",
    "SourceOutcome",
    "SourceSearch",
    "describe_failure",
    "run_source_search",
    "run_source_searches",
]
