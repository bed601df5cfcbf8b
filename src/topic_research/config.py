"""Centralised, injectable configuration for topic research."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Self

from dotenv import load_dotenv

from .exceptions import BooleanEnvVarError, PositiveNumberEnvVarError

DEFAULT_CACHE_DIR = str(Path.home() / ".cache" / "topic-research")


@dataclass(frozen=True)
class ResearchConfig:
    """Immutable configuration for the request and caching layer.

    Load from environment with `ResearchConfig.from_env()` or construct directly for testing.
    """

    # Cache store
    cache_dir: str = DEFAULT_CACHE_DIR
    cache_ttl_hours: float = 1.0
    stale_cache_ttl_hours: float = 24.0
    enrich_cache_ttl_hours: float = 24.0

    # Lock manager
    lock_wait_seconds: float = 5.0
    lock_stale_seconds: float = 60.0
    lock_poll_seconds: float = 0.1

    # Request executor
    max_attempts: int = 5
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 30.0
    backoff_jitter_seconds: float = 1.0
    timeout_seconds: float = 30.0

    debug: bool = False

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> Self:
        """Load configuration from environment variables.

        Args:
            dotenv_path: Optional path to .env file. If None, uses default .env discovery.

        Returns:
            ResearchConfig instance populated from environment.
        """
        load_dotenv(dotenv_path)

        return cls(
            cache_dir=os.getenv("TOPIC_RESEARCH_CACHE_DIR", "").strip() or DEFAULT_CACHE_DIR,
            cache_ttl_hours=_parse_hours(os.getenv("TOPIC_RESEARCH_CACHE_TTL", ""), 1.0),
            stale_cache_ttl_hours=_parse_hours(
                os.getenv("TOPIC_RESEARCH_STALE_CACHE_TTL", ""), 24.0
            ),
            enrich_cache_ttl_hours=_parse_hours(
                os.getenv("TOPIC_RESEARCH_ENRICH_CACHE_TTL", ""), 24.0
            ),
            lock_wait_seconds=_parse_positive_float(
                os.getenv("TOPIC_RESEARCH_LOCK_WAIT_SECONDS", ""),
                default=5.0,
                env_name="TOPIC_RESEARCH_LOCK_WAIT_SECONDS",
            ),
            lock_stale_seconds=_parse_positive_float(
                os.getenv("TOPIC_RESEARCH_LOCK_STALE_SECONDS", ""),
                default=60.0,
                env_name="TOPIC_RESEARCH_LOCK_STALE_SECONDS",
            ),
            lock_poll_seconds=_parse_positive_float(
                os.getenv("TOPIC_RESEARCH_LOCK_POLL_SECONDS", ""),
                default=0.1,
                env_name="TOPIC_RESEARCH_LOCK_POLL_SECONDS",
            ),
            max_attempts=_parse_positive_int(
                os.getenv("TOPIC_RESEARCH_MAX_ATTEMPTS", ""),
                default=5,
                env_name="TOPIC_RESEARCH_MAX_ATTEMPTS",
            ),
            backoff_base_seconds=_parse_positive_float(
                os.getenv("TOPIC_RESEARCH_BACKOFF_BASE_SECONDS", ""),
                default=1.0,
                env_name="TOPIC_RESEARCH_BACKOFF_BASE_SECONDS",
            ),
            backoff_max_seconds=_parse_positive_float(
                os.getenv("TOPIC_RESEARCH_BACKOFF_MAX_SECONDS", ""),
                default=30.0,
                env_name="TOPIC_RESEARCH_BACKOFF_MAX_SECONDS",
            ),
            backoff_jitter_seconds=_parse_positive_float(
                os.getenv("TOPIC_RESEARCH_BACKOFF_JITTER_SECONDS", ""),
                default=1.0,
                env_name="TOPIC_RESEARCH_BACKOFF_JITTER_SECONDS",
            ),
            timeout_seconds=_parse_positive_float(
                os.getenv("TOPIC_RESEARCH_TIMEOUT_SECONDS", ""),
                default=30.0,
                env_name="TOPIC_RESEARCH_TIMEOUT_SECONDS",
            ),
            debug=_parse_optional_bool(
                os.getenv("TOPIC_RESEARCH_DEBUG", ""), env_name="TOPIC_RESEARCH_DEBUG"
            )
            or False,
        )

    def with_overrides(
        self,
        *,
        cache_dir: str | None = None,
        debug: bool | None = None,
    ) -> Self:
        """Return a new config with specified overrides (for CLI options)."""
        return replace(
            self,
            cache_dir=self.cache_dir if cache_dir is None else cache_dir.strip(),
            debug=self.debug if debug is None else debug,
        )


def _parse_hours(value: str, fallback: float) -> float:
    """Parse a TTL in hours; blank, non-numeric or non-positive values use the fallback."""
    text = value.strip()
    if not text:
        return fallback
    try:
        parsed = float(text)
    except ValueError:
        return fallback
    if not math.isfinite(parsed) or parsed <= 0:
        return fallback
    return parsed


def _parse_positive_float(value: str, *, default: float, env_name: str) -> float:
    """Parse an optional positive number from an environment variable."""
    text = value.strip()
    if not text:
        return default
    try:
        parsed = float(text)
    except ValueError as exc:
        raise PositiveNumberEnvVarError(env_name) from exc
    if not parsed > 0:
        raise PositiveNumberEnvVarError(env_name)
    return parsed


def _parse_positive_int(value: str, *, default: int, env_name: str) -> int:
    """Parse an optional positive integer from an environment variable."""
    text = value.strip()
    if not text:
        return default
    try:
        parsed = int(text)
    except ValueError as exc:
        raise PositiveNumberEnvVarError(env_name) from exc
    if parsed < 1:
        raise PositiveNumberEnvVarError(env_name)
    return parsed


def _parse_optional_bool(value: str, *, env_name: str) -> bool | None:
    """Parse an optional boolean from an environment variable."""
    text = value.strip().lower()
    if not text:
        return None
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise BooleanEnvVarError(env_name)
