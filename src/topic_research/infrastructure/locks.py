"""Cross-process per-key locks built on exclusive file creation.

Usage example:
    from pathlib import Path

    from topic_research.infrastructure.locks import FileLockManager

    locks = FileLockManager(Path("~/.cache/topic-research/locks").expanduser())
    with locks.held("3f2a9c0d1e4b5a67") as acquired:
        ...

A lock is an empty `<lock_dir>/<key>.lock` file created with O_CREAT | O_EXCL, so
at most one process holds it. A lock older than `stale_seconds` is treated as left
behind by a crashed holder and reclaimed. Waits are always bounded.
"""

from __future__ import annotations

import os
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import override

from ..observability import get_logger
from ..protocols import LockManager

logger = get_logger("topic_research.infrastructure.locks")


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Reclaimed cache lock %s could not be removed: %s", path.name, exc)


@dataclass
class FileLockManager(LockManager):
    """Lease-style lock manager with stale-lock reclamation."""

    lock_dir: Path
    max_wait_seconds: float = 5.0
    poll_seconds: float = 0.1
    stale_seconds: float = 60.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        self.lock_dir = Path(self.lock_dir)

    def path_for(self, key: str) -> Path:
        return self.lock_dir / f"{key}.lock"

    def _try_create(self, path: Path) -> bool:
        fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        os.close(fd)
        return True

    def _lock_age(self, path: Path) -> float:
        return time.time() - path.stat().st_mtime

    def _reclaim_if_stale(self, path: Path) -> bool:
        """Remove an abandoned lock. Returns True when the caller should retry at once.

        The lock is renamed aside before it is judged again, so a peer that reclaimed
        it and took a fresh lock after our first check never loses that lock.
        """
        try:
            age = self._lock_age(path)
        except FileNotFoundError:
            # Holder released between our create and stat.
            return True
        except OSError:
            return False
        if age <= self.stale_seconds:
            return False

        moved = path.with_name(f"{path.name}.{os.getpid()}.{uuid.uuid4().hex}.stale")
        try:
            os.rename(path, moved)
        except FileNotFoundError:
            return True
        except OSError:
            return False

        try:
            age = self._lock_age(moved)
        except OSError:
            return True
        if age > self.stale_seconds:
            logger.info("Reclaiming stale cache lock %s (%.0fs old)", path.name, age)
            _discard(moved)
            return True

        # A peer's fresh lock: put it back unless the key was taken meanwhile.
        try:
            os.link(moved, path)
        except OSError as exc:
            logger.warning("Fresh cache lock %s could not be restored: %s", path.name, exc)
        _discard(moved)
        return False

    @override
    def acquire(self, key: str, max_wait_seconds: float | None = None) -> bool:
        """Take the lock for `key`, waiting at most `max_wait_seconds`.

        Returns False on timeout or when the lock directory is unusable; callers
        proceed without the lock in that case.
        """
        wait = self.max_wait_seconds if max_wait_seconds is None else max_wait_seconds
        deadline = time.monotonic() + max(0.0, wait)
        path = self.path_for(key)
        try:
            self.lock_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Cache lock directory unavailable: %s", exc)
            return False

        while True:
            try:
                return self._try_create(path)
            except FileExistsError:
                pass
            except OSError as exc:
                logger.warning("Cache lock %s could not be created: %s", path.name, exc)
                return False

            if self._reclaim_if_stale(path):
                continue
            if time.monotonic() >= deadline:
                return False
            self.sleep(self.poll_seconds)

    @override
    def release(self, key: str) -> None:
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError:
            # A concurrent stale reclaim may have removed or replaced it.
            pass

    @contextmanager
    def held(self, key: str, max_wait_seconds: float | None = None) -> Iterator[bool]:
        """Hold the lock for the duration of the block; yields whether it was acquired."""
        acquired = self.acquire(key, max_wait_seconds)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(key)
