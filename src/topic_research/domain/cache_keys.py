"""Deterministic cache key derivation for source searches.

Every input that changes what a search returns is part of the key, so two queries
only share a cache entry when they would produce the same result. Bumping
`SEARCH_CACHE_SCHEMA_VERSION` or a prompt version retires old entries without
touching the filesystem.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

SEARCH_CACHE_SCHEMA_VERSION = "v2"
KEY_LENGTH = 16

_WHITESPACE_RE = re.compile(r"\s+")


def normalise_topic(topic: str) -> str:
    """Trim, lower-case and collapse internal whitespace."""
    return _WHITESPACE_RE.sub(" ", topic.strip().lower())


def hash_key(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:KEY_LENGTH]


@dataclass(frozen=True)
class SourceQuery:
    """The full identity of one provider search."""

    topic: str
    from_date: str
    to_date: str
    days: int
    source: str
    depth: str
    model: str | None
    prompt_version: str

    def key_material(self, schema_version: str = SEARCH_CACHE_SCHEMA_VERSION) -> str:
        return "|".join(
            (
                f"schema={schema_version}",
                f"topic={normalise_topic(self.topic)}",
                f"from={self.from_date}",
                f"to={self.to_date}",
                f"days={self.days}",
                f"source={self.source}",
                f"depth={self.depth}",
                f"model={self.model or 'unknown'}",
                f"prompt={self.prompt_version}",
            )
        )

    def cache_key(self, schema_version: str = SEARCH_CACHE_SCHEMA_VERSION) -> str:
        return hash_key(self.key_material(schema_version))


def source_cache_key(
    topic: str,
    from_date: str,
    to_date: str,
    days: int,
    source: str,
    depth: str,
    model: str | None,
    prompt_version: str,
) -> str:
    """Return the versioned cache key for one source search."""
    query = SourceQuery(
        topic=topic,
        from_date=from_date,
        to_date=to_date,
        days=days,
        source=source,
        depth=depth,
        model=model,
        prompt_version=prompt_version,
    )
    return query.cache_key()


def enrichment_cache_key(url: str) -> str:
    """Return a stable cache key for enriching a single source URL."""
    return hash_key(f"enrich|url={url.strip()}")


def request_cache_key(method: str, url: str) -> str:
    """Return a cache key for a plain HTTP request, as used by `topic-research fetch`."""
    return hash_key(f"request|method={method.upper()}|url={url.strip()}")
