"""Tests for per-URL enrichment caching."""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from tests.fakes import InMemoryCache
from topic_research.application.enrich import CachedEnricher
from topic_research.application.fetch import CacheOptions
from topic_research.domain.cache_keys import enrichment_cache_key
from topic_research.exceptions import RateLimitError, ServerError
from topic_research.types import JsonObject

THREAD_URL = "https://www.reddit.com/r/python/comments/abc/"
FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _empty_seen() -> list[JsonObject]:
    return []


@dataclass
class ThreadEnricher:
    """Attaches a canned thread, or raises a canned error."""

    error: Exception | None = None
    seen: list[JsonObject] = field(default_factory=_empty_seen)

    def __call__(self, item: JsonObject) -> JsonObject:
        self.seen.append(item)
        if self.error is not None:
            raise self.error
        return {**item, "thread": {"comments": [{"body": "hi"}]}}


def _enricher(cache: InMemoryCache, ttl_hours: float = 24.0) -> CachedEnricher:
    return CachedEnricher(cache=cache, ttl_hours=ttl_hours, now=lambda: FIXED_NOW)


class TestCachedEnricher:
    """Tests for `CachedEnricher.enrich`."""

    def test_miss_enriches_and_writes_through(self) -> None:
        cache = InMemoryCache()
        enrich_item = ThreadEnricher()

        outcome = _enricher(cache).enrich({"url": THREAD_URL, "title": "t"}, enrich_item)

        assert outcome.from_cache is False
        assert outcome.enriched is True
        assert outcome.item["thread"] == {"comments": [{"body": "hi"}]}
        assert cache.get(enrichment_cache_key(THREAD_URL)) == {
            "item": outcome.item,
            "cached_at": "2024-05-01T12:00:00+00:00",
        }

    def test_fresh_record_is_reused(self) -> None:
        cache = InMemoryCache()
        cached = {"url": THREAD_URL, "thread": {"comments": []}}
        cache.put(enrichment_cache_key(THREAD_URL), {"item": cached}, age_hours=3.0)
        enrich_item = ThreadEnricher()

        outcome = _enricher(cache).enrich({"url": THREAD_URL}, enrich_item)

        assert outcome.from_cache is True
        assert outcome.item == cached
        assert enrich_item.seen == []

    def test_record_older_than_enrichment_ttl_is_refetched(self) -> None:
        cache = InMemoryCache()
        cache.put(enrichment_cache_key(THREAD_URL), {"item": {"old": True}}, age_hours=7.0)
        enrich_item = ThreadEnricher()

        outcome = _enricher(cache, ttl_hours=6.0).enrich({"url": THREAD_URL}, enrich_item)

        assert outcome.from_cache is False
        assert len(enrich_item.seen) == 1

    def test_empty_or_malformed_record_is_a_miss(self) -> None:
        for record in ({"item": {}}, {"item": "text"}, {"cached_at": "x"}, [1, 2]):
            cache = InMemoryCache()
            cache.put(enrichment_cache_key(THREAD_URL), record, age_hours=0.5)
            enrich_item = ThreadEnricher()

            outcome = _enricher(cache).enrich({"url": THREAD_URL}, enrich_item)

            assert outcome.from_cache is False
            assert len(enrich_item.seen) == 1

    def test_refresh_skips_read_but_writes(self) -> None:
        cache = InMemoryCache()
        key = enrichment_cache_key(THREAD_URL)
        cache.put(key, {"item": {"old": True}}, age_hours=0.5)
        enrich_item = ThreadEnricher()

        outcome = _enricher(cache).enrich(
            {"url": THREAD_URL}, enrich_item, options=CacheOptions.from_flags(refresh=True)
        )

        assert outcome.from_cache is False
        assert cache.writes == [key]

    def test_no_cache_skips_read_and_write(self) -> None:
        cache = InMemoryCache()
        cache.put(enrichment_cache_key(THREAD_URL), {"item": {"old": True}}, age_hours=0.5)
        enrich_item = ThreadEnricher()

        outcome = _enricher(cache).enrich(
            {"url": THREAD_URL}, enrich_item, options=CacheOptions.from_flags(no_cache=True)
        )

        assert outcome.from_cache is False
        assert cache.writes == []

    def test_failure_keeps_original_item_and_caches_nothing(self) -> None:
        cache = InMemoryCache()
        item: JsonObject = {"url": THREAD_URL, "title": "t"}
        enrich_item = ThreadEnricher(error=ServerError("HTTP 503: Unavailable", attempts=3))

        outcome = _enricher(cache).enrich(item, enrich_item)

        assert outcome.item == item
        assert outcome.enriched is False
        assert outcome.error == "Enrich failed: HTTP 503: Unavailable"
        assert cache.writes == []

    def test_item_without_url_is_enriched_uncached(self) -> None:
        cache = InMemoryCache()

        outcome = _enricher(cache).enrich({"title": "t"}, ThreadEnricher())

        assert "thread" in outcome.item
        assert cache.writes == []

    def test_failed_write_still_returns_enriched_item(self) -> None:
        cache = InMemoryCache(fail_writes=True)

        outcome = _enricher(cache).enrich({"url": THREAD_URL}, ThreadEnricher())

        assert outcome.enriched is True
        assert "thread" in outcome.item

    def test_enrich_all_keeps_order_and_isolates_failures(self) -> None:
        cache = InMemoryCache()
        other_url = "https://www.reddit.com/r/python/comments/def/"
        cache.put(enrichment_cache_key(other_url), {"item": {"url": other_url, "c": 1}})
        enrich_item = ThreadEnricher(error=RateLimitError("HTTP 429", retryable=True, attempts=5))

        outcomes = _enricher(cache).enrich_all(
            [{"url": THREAD_URL}, {"url": other_url}], enrich_item
        )

        assert [outcome.item["url"] for outcome in outcomes] == [THREAD_URL, other_url]
        assert outcomes[0].enriched is False
        assert outcomes[1].from_cache is True
