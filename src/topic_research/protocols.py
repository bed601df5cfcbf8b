"""Protocol definitions for dependency injection.

These protocols define the abstract interfaces that the fetch orchestrator depends on,
enabling isolated unit testing with fake implementations.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from .types import CacheHit, JsonValue


@runtime_checkable
class Cache(Protocol):
    """Abstract TTL-bounded cache for JSON payloads."""

    def read(self, key: str, ttl_hours: float) -> CacheHit | None:
        """Return the record if it is younger than `ttl_hours`, else None."""
        ...

    def read_with_age(self, key: str, ttl_hours: float) -> CacheHit | None:
        """Return the record and its age if it is younger than `ttl_hours`."""
        ...

    def read_stale(self, key: str) -> CacheHit | None:
        """Return the record if it is within the stale-fallback TTL."""
        ...

    def write(self, key: str, value: JsonValue) -> bool:
        """Persist a record atomically. Returns False when it was not persisted."""
        ...


@runtime_checkable
class LockManager(Protocol):
    """Abstract per-key mutual exclusion across processes."""

    def acquire(self, key: str, max_wait_seconds: float | None = None) -> bool:
        """Try to take the lock for `key` within the wait budget."""
        ...

    def release(self, key: str) -> None:
        """Release the lock for `key`; never raises."""
        ...


@runtime_checkable
class HttpClient(Protocol):
    """Abstract JSON HTTP client with retries."""

    def request(
        self,
        method: str,
        url: str,
        *,
        json_body: Mapping[str, object] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout_seconds: float | None = None,
    ) -> JsonValue:
        """Perform one logical request and return the decoded JSON value.

        Raises:
            HttpError: A subclass describing the final failure.
        """
        ...
