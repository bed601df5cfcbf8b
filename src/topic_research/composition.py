"""Composition root for wiring CLI dependencies."""

from __future__ import annotations

from pathlib import Path

import requests

from .application.enrich import CachedEnricher
from .application.fetch import CachedFetcher
from .cli import CliDependencies, create_app
from .config import ResearchConfig
from .infrastructure import BackoffPolicy, DiskCache, FileLockManager, ResilientHttpClient
from .observability import enable_debug_tree

LOCK_SUBDIR = "locks"


def build_cli_dependencies(*, config: ResearchConfig) -> CliDependencies:
    """Build concrete dependencies for CLI commands.

    Args:
        config: Research configuration (cache root, TTLs, lock and retry settings).
    """
    if config.debug:
        enable_debug_tree()
    cache_dir = Path(config.cache_dir).expanduser()
    cache = DiskCache(cache_dir, stale_ttl_hours=config.stale_cache_ttl_hours)
    locks = FileLockManager(
        cache_dir / LOCK_SUBDIR,
        max_wait_seconds=config.lock_wait_seconds,
        poll_seconds=config.lock_poll_seconds,
        stale_seconds=config.lock_stale_seconds,
    )
    http_client = ResilientHttpClient(
        session=requests.Session(),
        backoff=BackoffPolicy(
            base_delay_seconds=config.backoff_base_seconds,
            max_delay_seconds=config.backoff_max_seconds,
            max_jitter_seconds=config.backoff_jitter_seconds,
        ),
        max_attempts=config.max_attempts,
        timeout_seconds=config.timeout_seconds,
        debug=config.debug,
    )
    fetcher = CachedFetcher(
        cache=cache,
        locks=locks,
        fresh_ttl_hours=config.cache_ttl_hours,
        max_lock_wait_seconds=config.lock_wait_seconds,
    )
    enricher = CachedEnricher(cache=cache, ttl_hours=config.enrich_cache_ttl_hours)
    return CliDependencies(
        cache=cache, fetcher=fetcher, http_client=http_client, enricher=enricher
    )


app = create_app(build_cli_dependencies)
