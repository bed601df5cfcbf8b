"""Per-URL enrichment through the disk cache.

Usage example:
    from topic_research.application.enrich import CachedEnricher

    enricher = CachedEnricher(cache=cache, ttl_hours=config.enrich_cache_ttl_hours)
    outcome = enricher.enrich(item, fetch_thread, options=CacheOptions.from_flags(refresh=True))

Enriching a search hit (fetching its thread, comments, ...) costs a request per
item. The enriched item is stored under the enrichment key of its URL as
`{"item": ..., "cached_at": ...}` and reused until the enrichment TTL runs out.
A failed enrichment keeps the original item and is never cached.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from ..domain.cache_keys import enrichment_cache_key
from ..exceptions import HttpError
from ..observability import get_logger
from ..protocols import Cache
from ..types import JsonObject
from .fetch import CacheOptions

logger = get_logger("topic_research.application.enrich")

ENRICH_CACHE_TTL_HOURS = 24.0

EnrichItem = Callable[[JsonObject], JsonObject]


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class EnrichmentOutcome:
    """An item after enrichment, or the original item plus the reason it was kept."""

    item: JsonObject
    from_cache: bool = False
    error: str | None = None

    @property
    def enriched(self) -> bool:
        return self.error is None


def _item_url(item: JsonObject) -> str:
    url = item.get("url")
    return url.strip() if isinstance(url, str) else ""


@dataclass
class CachedEnricher:
    """Enriches items at most once per URL per enrichment TTL."""

    cache: Cache
    ttl_hours: float = ENRICH_CACHE_TTL_HOURS
    now: Callable[[], datetime] = field(default=_utc_now, repr=False)

    def cached_item(self, key: str) -> JsonObject | None:
        hit = self.cache.read_with_age(key, self.ttl_hours)
        if hit is None or not isinstance(hit.payload, dict):
            return None
        item = hit.payload.get("item")
        if not isinstance(item, dict) or not item:
            return None
        return item

    def enrich(
        self,
        item: JsonObject,
        enrich_item: EnrichItem,
        *,
        options: CacheOptions | None = None,
    ) -> EnrichmentOutcome:
        """Return the enriched item, from cache when a fresh record exists.

        Args:
            item: Search hit to enrich; its `url` field selects the cache record.
            enrich_item: Performs the enrichment; may raise HttpError.
            options: Cache read/write switches for this run.
        """
        opts = options or CacheOptions()
        url = _item_url(item)
        key = enrichment_cache_key(url) if url else None

        if key is not None and not opts.skip_read:
            cached = self.cached_item(key)
            if cached is not None:
                return EnrichmentOutcome(item=cached, from_cache=True)

        try:
            enriched = enrich_item(item)
        except HttpError as exc:
            logger.warning("Enrich failed for %s: %s", url or "item without url", exc)
            return EnrichmentOutcome(item=item, error=f"Enrich failed: {exc}")

        if key is not None and not opts.skip_write:
            record: JsonObject = {"item": enriched, "cached_at": self.now().isoformat()}
            if not self.cache.write(key, record):
                logger.debug("Enrichment for %s was not cached this run", url)
        return EnrichmentOutcome(item=enriched)

    def enrich_all(
        self,
        items: Iterable[JsonObject],
        enrich_item: EnrichItem,
        *,
        options: CacheOptions | None = None,
    ) -> list[EnrichmentOutcome]:
        return [self.enrich(item, enrich_item, options=options) for item in items]
