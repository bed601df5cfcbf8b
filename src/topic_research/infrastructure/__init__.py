"""Concrete infrastructure implementations and shared helpers."""

from .backoff import (
    BackoffPolicy,
    RateLimitClassification,
    RateLimitSignal,
    classify_rate_limit,
    parse_ratelimit_reset,
    parse_retry_after,
)
from .cache import DiskCache
from .http import ResilientHttpClient
from .locks import FileLockManager
from .model_cache import ModelSelectionCache

__all__ = [
    "BackoffPolicy",
    "DiskCache",
    "FileLockManager",
    "ModelSelectionCache",
    "RateLimitClassification",
    "RateLimitSignal",
    "ResilientHttpClient",
    "classify_rate_limit",
    "parse_ratelimit_reset",
    "parse_retry_after",
]
