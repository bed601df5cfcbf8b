"""Filesystem cache for expensive search results.

Usage example:
    from pathlib import Path

    from topic_research.infrastructure.cache import DiskCache

    cache = DiskCache(Path("~/.cache/topic-research").expanduser(), stale_ttl_hours=24)
    cache.write("3f2a9c0d1e4b5a67", {"items": []})
    hit = cache.read_with_age("3f2a9c0d1e4b5a67", ttl_hours=1)

Each key maps to `<cache_dir>/<key>.json`. Age comes from the file's modification
time. Records are only ever replaced by an atomic rename, and any unreadable or
malformed file is reported as a miss.
"""

from __future__ import annotations

import json
import os
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import override

from ..io_validation import IncomingDataError, validate_json_value
from ..observability import get_logger
from ..protocols import Cache
from ..types import CacheEntry, CacheHit, JsonValue

logger = get_logger("topic_research.infrastructure.cache")

_SECONDS_PER_HOUR = 3600.0
_RECORD_SUFFIX = ".json"


@dataclass
class DiskCache(Cache):
    """File-based TTL cache safe for concurrent writers."""

    cache_dir: Path
    stale_ttl_hours: float = 24.0
    clock: Callable[[], float] = field(default=time.time, repr=False)

    def __post_init__(self) -> None:
        self.cache_dir = Path(self.cache_dir)

    def path_for(self, key: str) -> Path:
        return self.cache_dir / f"{key}{_RECORD_SUFFIX}"

    def _age_hours(self, path: Path) -> float | None:
        try:
            mtime = path.stat().st_mtime
        except OSError:
            return None
        return max(0.0, self.clock() - mtime) / _SECONDS_PER_HOUR

    def _load(self, path: Path, age_hours: float) -> CacheHit | None:
        try:
            raw = path.read_bytes()
        except OSError:
            return None
        try:
            payload = validate_json_value(raw)
        except IncomingDataError:
            logger.debug("Ignoring unreadable cache file %s", path.name)
            return None
        return CacheHit(payload=payload, age_hours=age_hours)

    def age_hours(self, key: str) -> float | None:
        """Return the age of a cache record in hours, or None if absent."""
        return self._age_hours(self.path_for(key))

    @override
    def read(self, key: str, ttl_hours: float) -> CacheHit | None:
        return self.read_with_age(key, ttl_hours)

    @override
    def read_with_age(self, key: str, ttl_hours: float) -> CacheHit | None:
        path = self.path_for(key)
        age = self._age_hours(path)
        if age is None or age >= ttl_hours:
            return None
        return self._load(path, age)

    @override
    def read_stale(self, key: str) -> CacheHit | None:
        """Read within the longer fallback TTL. Only for use after a transient failure."""
        return self.read_with_age(key, self.stale_ttl_hours)

    @override
    def write(self, key: str, value: JsonValue) -> bool:
        """Write a record via temp file + rename.

        Returns False when the record could not be persisted; the previous record,
        if any, is left untouched and no temp file remains.
        """
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            content = json.dumps(value, ensure_ascii=False)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Cache write skipped for %s: %s", key, exc)
            return False

        tmp_path: str | None = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{key}.", suffix=".tmp", dir=self.cache_dir
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(tmp_path, self.path_for(key))
        except OSError as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)
            if tmp_path is not None:
                Path(tmp_path).unlink(missing_ok=True)
            return False
        return True

    def entries(self) -> list[CacheEntry]:
        """List cache records with their ages, oldest last."""
        found: list[CacheEntry] = []
        try:
            paths = sorted(self.cache_dir.glob(f"*{_RECORD_SUFFIX}"))
        except OSError:
            return found
        for path in paths:
            try:
                stat = path.stat()
            except OSError:
                continue
            age = max(0.0, self.clock() - stat.st_mtime) / _SECONDS_PER_HOUR
            found.append(CacheEntry(key=path.stem, age_hours=age, size_bytes=stat.st_size))
        return sorted(found, key=lambda entry: entry.age_hours)

    def clear_all(self) -> int:
        """Best-effort delete of every cache record. Returns the number removed."""
        removed = 0
        try:
            paths = list(self.cache_dir.glob(f"*{_RECORD_SUFFIX}"))
        except OSError:
            return removed
        for path in paths:
            try:
                path.unlink()
            except OSError:
                continue
            removed += 1
        return removed
