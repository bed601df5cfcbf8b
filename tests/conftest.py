"""Pytest fixtures shared across the suite.

All tests are network-isolated - socket connections are blocked by default.
"""

from __future__ import annotations

import socket
from collections.abc import Iterator
from pathlib import Path

import pytest

from tests.support.errors import NetworkIsolationError
from topic_research.infrastructure.cache import DiskCache
from topic_research.infrastructure.locks import FileLockManager


def _blocked_socket_connect(self: socket.socket, *args: object, **kwargs: object) -> None:
    """Raise an error if any test tries to make a real network connection."""
    raise NetworkIsolationError(str(args))


@pytest.fixture(autouse=True)
def block_network_access(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Block all network access in tests.

    Tests that need HTTP should use a fake live call or MagicMock(spec=requests.Session).
    """
    monkeypatch.setattr(socket.socket, "connect", _blocked_socket_connect)
    yield


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Isolated cache root for one test."""
    return tmp_path / "cache"


@pytest.fixture
def disk_cache(cache_dir: Path) -> DiskCache:
    return DiskCache(cache_dir, stale_ttl_hours=24.0)


@pytest.fixture
def file_locks(cache_dir: Path) -> FileLockManager:
    return FileLockManager(cache_dir / "locks", max_wait_seconds=0.5, poll_seconds=0.01)
