"""Exports for test fakes."""

from .cache import InMemoryCache
from .http import FakeHttpClient, ScriptedLiveCall, make_response
from .locks import RecordingLockManager

__all__ = [
    "FakeHttpClient",
    "InMemoryCache",
    "RecordingLockManager",
    "ScriptedLiveCall",
    "make_response",
]
