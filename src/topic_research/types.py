"""Typed data contracts shared by the cache and request layers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import JsonValue

JsonObject = dict[str, JsonValue]

__all__ = ["CacheEntry", "CacheHit", "JsonObject", "JsonValue", "Provenance"]


class Provenance(StrEnum):
    """Where a fetched payload came from."""

    FRESH = "fresh"
    STALE = "stale"
    LIVE = "live"


@dataclass(frozen=True)
class CacheHit:
    """A cache record read back from disk, with its age at read time.

    `payload` is any JSON value: object, array, string, number, boolean or null.
    """

    payload: JsonValue
    age_hours: float


@dataclass(frozen=True)
class CacheEntry:
    """Summary of one cache file for status reporting."""

    key: str
    age_hours: float
    size_bytes: int
