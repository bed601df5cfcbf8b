"""Tests for concurrent source searches and run summaries."""

import threading

from tests.fakes import InMemoryCache, RecordingLockManager, ScriptedLiveCall
from topic_research.application.fetch import CacheOptions, CachedFetcher
from topic_research.application.research import (
    ResearchSummary,
    SourceOutcome,
    SourceSearch,
    describe_failure,
    run_source_searches,
)
from topic_research.exceptions import ClientError, RateLimitError
from topic_research.types import JsonValue, Provenance


def _fetcher(cache: InMemoryCache) -> CachedFetcher:
    return CachedFetcher(cache=cache, locks=RecordingLockManager(), fresh_ttl_hours=1.0)


class TestDescribeFailure:
    """User-facing failure messages."""

    def test_transient_rate_limit(self) -> None:
        error = RateLimitError("HTTP 429", retryable=True, attempts=5)

        assert describe_failure(error) == "Rate limited after 5 retries"

    def test_quota_limit(self) -> None:
        error = RateLimitError("HTTP 429", retryable=False, attempts=1)

        assert describe_failure(error) == "Quota/billing limit reached (non-retryable 429)"

    def test_other_http_error(self) -> None:
        error = ClientError("HTTP 400: Bad Request", status_code=400)

        assert describe_failure(error) == "API error: HTTP 400: Bad Request"


class TestRunSourceSearches:
    """Sources run side by side and fail independently."""

    def test_each_source_gets_its_own_outcome(self) -> None:
        cache = InMemoryCache()
        cache.put("reddit-key", {"items": ["cached"]}, age_hours=0.25)
        searches = [
            SourceSearch("reddit", "reddit-key", ScriptedLiveCall()),
            SourceSearch("x", "x-key", ScriptedLiveCall([{"items": ["live"]}])),
        ]

        outcomes = run_source_searches(_fetcher(cache), searches)

        assert outcomes["reddit"].payload == {"items": ["cached"]}
        assert outcomes["reddit"].provenance is Provenance.FRESH
        assert outcomes["reddit"].from_cache is True
        assert outcomes["x"].payload == {"items": ["live"]}
        assert outcomes["x"].provenance is Provenance.LIVE
        assert outcomes["x"].from_cache is False

    def test_failure_in_one_source_does_not_affect_others(self) -> None:
        cache = InMemoryCache()
        searches = [
            SourceSearch(
                "reddit",
                "reddit-key",
                ScriptedLiveCall([RateLimitError("HTTP 429", retryable=False, attempts=1)]),
            ),
            SourceSearch("x", "x-key", ScriptedLiveCall([{"items": [1]}])),
        ]

        outcomes = run_source_searches(_fetcher(cache), searches)

        assert outcomes["reddit"].payload is None
        assert outcomes["reddit"].error == "Quota/billing limit reached (non-retryable 429)"
        assert outcomes["reddit"].rate_limited is True
        assert outcomes["x"].error is None
        assert outcomes["x"].payload == {"items": [1]}

    def test_stale_fallback_is_reported(self) -> None:
        cache = InMemoryCache()
        cache.put("x-key", {"items": ["old"]}, age_hours=6.0)
        searches = [
            SourceSearch(
                "x",
                "x-key",
                ScriptedLiveCall([RateLimitError("HTTP 429", retryable=True, attempts=5)]),
            )
        ]

        outcome = run_source_searches(_fetcher(cache), searches)["x"]

        assert outcome.used_stale_cache is True
        assert outcome.rate_limited is True
        assert outcome.age_hours == 6.0

    def test_searches_run_concurrently(self) -> None:
        barrier = threading.Barrier(2, timeout=5)

        def live_call() -> JsonValue:
            barrier.wait()
            return {"items": [1]}

        searches = [
            SourceSearch("reddit", "reddit-key", live_call),
            SourceSearch("x", "x-key", live_call),
        ]

        outcomes = run_source_searches(_fetcher(InMemoryCache()), searches)

        assert all(outcome.error is None for outcome in outcomes.values())

    def test_options_apply_to_every_source(self) -> None:
        cache = InMemoryCache()
        searches = [SourceSearch("x", "x-key", ScriptedLiveCall([{"items": [1]}]))]

        run_source_searches(_fetcher(cache), searches, CacheOptions.from_flags(no_cache=True))

        assert cache.writes == []

    def test_no_searches(self) -> None:
        assert run_source_searches(_fetcher(InMemoryCache()), []) == {}


class TestResearchSummary:
    """Aggregated cache provenance for a whole run."""

    def test_summarises_outcomes(self) -> None:
        outcomes = {
            "reddit": SourceOutcome(
                "reddit", {"items": []}, provenance=Provenance.FRESH, age_hours=0.5
            ),
            "x": SourceOutcome(
                "x",
                {"items": []},
                provenance=Provenance.STALE,
                age_hours=6.0,
                rate_limited=True,
            ),
            "web": SourceOutcome("web", None, error="API error: HTTP 500", rate_limited=False),
        }

        summary = ResearchSummary.from_outcomes(outcomes)

        assert summary.any_from_cache is True
        assert summary.max_cache_age_hours == 6.0
        assert summary.rate_limited_sources == ("x",)
        assert summary.stale_sources == ("x",)
        assert summary.errors == {"web": "API error: HTTP 500"}

    def test_all_live_run(self) -> None:
        outcomes = {"x": SourceOutcome("x", {"items": []}, provenance=Provenance.LIVE)}

        summary = ResearchSummary.from_outcomes(outcomes)

        assert summary.any_from_cache is False
        assert summary.max_cache_age_hours is None
        assert summary.errors == {}
