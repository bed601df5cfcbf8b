"""Backoff and rate-limit classification for outbound requests.

Usage example:
    from topic_research.infrastructure.backoff import BackoffPolicy, classify_rate_limit

    policy = BackoffPolicy(base_delay_seconds=1.0, max_delay_seconds=30.0)
    delay = policy.compute_delay(attempt=2)
    verdict = classify_rate_limit('{"error": {"code": "insufficient_quota"}}')
"""

from __future__ import annotations

import random
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

from ..io_validation import parse_provider_error

NON_RETRYABLE_RATE_LIMIT_CODES = frozenset(
    {
        "insufficient_quota",
        "billing_hard_limit_reached",
        "account_deactivated",
    }
)

_NON_RETRYABLE_SIGNALS = (
    "insufficient_quota",
    "billing_hard_limit_reached",
    "account_deactivated",
    "quota exceeded",
    "billing",
    "payment required",
)

# 2**62 s is past any ceiling; large exponents overflow float multiplication.
_MAX_EXPONENT = 62
_RESET_SENTINELS = frozenset({"-1", "0", "0s", "0ms"})
_PLAIN_SECONDS_RE = re.compile(r"^\d+(?:\.\d+)?$")
_COMPOUND_DURATION_RE = re.compile(r"^(?:(\d+)h)?(?:(\d+)m(?!s))?(?:(\d+)s)?(?:(\d+)ms)?$")


@dataclass(frozen=True)
class RateLimitClassification:
    """Whether a 429 is worth retrying, and the provider code behind the verdict."""

    retryable: bool
    code: str | None = None


@dataclass(frozen=True)
class RateLimitSignal:
    """Everything the executor needs to act on one 429 response."""

    retryable: bool
    delay_seconds: float
    code: str | None = None
    reset_seconds: float | None = None


def _header(headers: Mapping[str, str] | None, name: str) -> str | None:
    if not headers:
        return None
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


def parse_retry_after(value: str | None, *, now: datetime | None = None) -> float | None:
    """Parse a Retry-After value (seconds or HTTP date) into seconds."""
    if not value:
        return None
    text = value.strip()
    if not text:
        return None
    if _PLAIN_SECONDS_RE.match(text):
        return float(text)
    try:
        dt = parsedate_to_datetime(text)
    except (AttributeError, OverflowError, TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    delta = (dt - (now or datetime.now(UTC))).total_seconds()
    return max(0.0, delta)


def parse_ratelimit_reset(value: str | None) -> float | None:
    """Parse x-ratelimit-reset-* durations like "1s", "6m0s", "1h2m3s" or "250ms".

    Returns None for sentinel values such as "-1" and "0", and for zero totals.
    """
    if not value:
        return None
    text = value.strip().lower()
    if not text or text in _RESET_SENTINELS:
        return None
    if _PLAIN_SECONDS_RE.match(text):
        seconds = float(text)
        return seconds if seconds > 0 else None

    match = _COMPOUND_DURATION_RE.match(text)
    if not match:
        return None
    hours, minutes, seconds, millis = (int(part) if part else 0 for part in match.groups())
    total = hours * 3600 + minutes * 60 + seconds + millis / 1000
    return total if total > 0 else None


def classify_rate_limit(body: str | None) -> RateLimitClassification:
    """Decide whether a 429 is transient or a quota/billing hard-fail.

    Structured `error.code` / `error.type` fields win; otherwise message and raw body
    substrings are checked. Anything unrecognised, including an absent or malformed
    body, is treated as transient.
    """
    meta = parse_provider_error(body)
    code = (meta.code or "").lower()
    error_type = (meta.type or "").lower()
    message = (meta.message or "").lower()
    raw = (body or "").lower()

    if code in NON_RETRYABLE_RATE_LIMIT_CODES:
        return RateLimitClassification(retryable=False, code=code)
    if error_type in NON_RETRYABLE_RATE_LIMIT_CODES:
        return RateLimitClassification(retryable=False, code=error_type)

    for signal in _NON_RETRYABLE_SIGNALS:
        if signal in code or signal in error_type or signal in message or signal in raw:
            return RateLimitClassification(retryable=False, code=signal)

    return RateLimitClassification(retryable=True, code=meta.code or meta.type)


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff with additive jitter and a hard ceiling."""

    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    max_jitter_seconds: float = 1.0
    jitter: Callable[[float, float], float] = field(default=random.uniform, repr=False)

    def compute_delay(self, attempt: int) -> float:
        """Return the delay before retrying after `attempt` (zero-based)."""
        exponential = self.base_delay_seconds * (2 ** min(max(0, attempt), _MAX_EXPONENT))
        jitter = self.jitter(0.0, self.max_jitter_seconds) if self.max_jitter_seconds > 0 else 0.0
        return min(exponential + jitter, self.max_delay_seconds)

    def provider_hint(self, headers: Mapping[str, str] | None) -> float:
        """Longest wait any provider header asks for, or 0.0."""
        hints = (
            parse_retry_after(_header(headers, "Retry-After")),
            parse_ratelimit_reset(_header(headers, "x-ratelimit-reset-requests")),
            parse_ratelimit_reset(_header(headers, "x-ratelimit-reset-tokens")),
        )
        return max((hint for hint in hints if hint is not None), default=0.0)

    def resolve_rate_limit_delay(self, attempt: int, headers: Mapping[str, str] | None) -> float:
        """Wait for a 429: never shorter than the provider hint, never above the ceiling."""
        return min(
            self.max_delay_seconds,
            max(self.compute_delay(attempt), self.provider_hint(headers)),
        )

    def rate_limit_signal(
        self,
        attempt: int,
        headers: Mapping[str, str] | None,
        body: str | None,
    ) -> RateLimitSignal:
        classification = classify_rate_limit(body)
        reset = parse_ratelimit_reset(_header(headers, "x-ratelimit-reset-requests"))
        if reset is None:
            reset = parse_ratelimit_reset(_header(headers, "x-ratelimit-reset-tokens"))
        return RateLimitSignal(
            retryable=classification.retryable,
            delay_seconds=self.resolve_rate_limit_delay(attempt, headers),
            code=classification.code,
            reset_seconds=reset,
        )
