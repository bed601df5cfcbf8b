"""Custom exceptions for topic research.

These exceptions provide clear error handling and enable testing of error paths.
Retryable HTTP failures are absorbed by the request executor; callers only ever
see the final typed error once the attempt budget is spent.
"""

from __future__ import annotations


class ResearchError(Exception):
    """Base exception for all topic research errors."""

    pass


class HttpError(ResearchError):
    """Raised when an HTTP call fails after the executor has given up.

    Carries enough provider metadata for the caller to decide what to report.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
        method: str | None = None,
        url: str | None = None,
        request_id: str | None = None,
        error_code: str | None = None,
        error_type: str | None = None,
        attempts: int = 1,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.method = method
        self.url = url
        self.request_id = request_id
        self.error_code = error_code
        self.error_type = error_type
        self.attempts = attempts
        super().__init__(message)


class ClientError(HttpError):
    """Raised for 4xx responses other than 429.

    A malformed request does not become valid by waiting, so this is never retried.
    """


class ServerError(HttpError):
    """Raised when 5xx responses persist for the whole attempt budget."""


class TransportError(HttpError):
    """Raised for network failures, timeouts and undecodable response bodies."""


class RateLimitError(HttpError):
    """Raised when the provider answers 429 Too Many Requests.

    `retryable` is False for quota, billing and deactivated-account limits, which
    only the user can fix.
    """

    def __init__(
        self,
        message: str,
        *,
        retryable: bool,
        attempts: int,
        retry_after_seconds: float | None = None,
        ratelimit_reset_seconds: float | None = None,
        body: str | None = None,
        method: str | None = None,
        url: str | None = None,
        request_id: str | None = None,
        error_code: str | None = None,
        error_type: str | None = None,
    ) -> None:
        self.retryable = retryable
        self.retry_after_seconds = retry_after_seconds
        self.ratelimit_reset_seconds = ratelimit_reset_seconds
        super().__init__(
            message,
            status_code=429,
            body=body,
            method=method,
            url=url,
            request_id=request_id,
            error_code=error_code,
            error_type=error_type,
            attempts=attempts,
        )


class PositiveNumberEnvVarError(ValueError):
    """Raised when an environment variable must be a positive number."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive number.")


class BooleanEnvVarError(ValueError):
    """Raised when an environment variable must be a supported boolean."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a boolean value (true/false, 1/0, yes/no, on/off).")
