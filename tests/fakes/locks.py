"""Lock manager fakes for tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import override

from topic_research.protocols import LockManager


def _empty_events() -> list[str]:
    return []


def _empty_held() -> set[str]:
    return set()


@dataclass
class RecordingLockManager(LockManager):
    """Single-process lock manager that records acquire/release order."""

    grant: bool = True
    events: list[str] = field(default_factory=_empty_events)
    held: set[str] = field(default_factory=_empty_held)

    @override
    def acquire(self, key: str, max_wait_seconds: float | None = None) -> bool:
        self.events.append(f"acquire:{key}")
        if not self.grant or key in self.held:
            return False
        self.held.add(key)
        return True

    @override
    def release(self, key: str) -> None:
        self.events.append(f"release:{key}")
        self.held.discard(key)
