"""Resilient JSON HTTP client for rate-limited provider APIs.

Usage example:
    import requests

    from topic_research.infrastructure.backoff import BackoffPolicy
    from topic_research.infrastructure.http import ResilientHttpClient

    client = ResilientHttpClient(
        session=requests.Session(),
        backoff=BackoffPolicy(base_delay_seconds=1.0, max_delay_seconds=30.0),
        max_attempts=5,
    )
    data = client.post_json("https://api.example.com/v1/responses", {"input": "hello"})
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from typing import override

import requests

from .. import __version__
from ..exceptions import ClientError, HttpError, RateLimitError, ServerError, TransportError
from ..io_validation import IncomingDataError, parse_provider_error, validate_json_value
from ..observability import enable_debug, get_logger
from ..protocols import HttpClient
from ..types import JsonValue
from .backoff import BackoffPolicy

logger = get_logger("topic_research.infrastructure.http")

USER_AGENT = f"topic-research/{__version__}"
REQUEST_ID_HEADER = "x-request-id"


def _response_details(response: requests.Response) -> str:
    """Return a compact status/body summary for debug logging."""
    try:
        body = response.text
    except (UnicodeDecodeError, ValueError, requests.RequestException):
        body = "<unreadable>"
    body = " ".join(body.split())
    if len(body) > 500:
        body = body[:500] + "..."
    return f"status={response.status_code}, body={body}"


def _response_text(response: requests.Response) -> str:
    try:
        return response.text
    except (UnicodeDecodeError, ValueError, requests.RequestException):
        return ""


class ResilientHttpClient(HttpClient):
    """JSON HTTP client with bounded, classified retries.

    Provides robust error handling:
    - 2xx responses are decoded as any JSON value (empty body gives {})
    - 429 responses are classified; quota/billing limits fail immediately,
      transient limits wait for max(backoff, provider hint) and retry
    - Other 4xx responses raise ClientError without retrying
    - 5xx responses, network errors, timeouts and undecodable bodies retry
      with exponential backoff
    - Once the attempt budget is spent the last failure is raised
    """

    def __init__(
        self,
        *,
        session: requests.Session,
        backoff: BackoffPolicy | None = None,
        max_attempts: int = 5,
        timeout_seconds: float = 30.0,
        debug: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session
        self.backoff = backoff or BackoffPolicy()
        self.max_attempts = max(1, max_attempts)
        self.timeout_seconds = timeout_seconds
        self.debug = debug
        self._sleep = sleep
        if debug:
            enable_debug(logger)

    def _log(self, message: str, *args: object) -> None:
        if self.debug:
            logger.debug(message, *args)

    @override
    def request(
        self,
        method: str,
        url: str,
        *,
        json_body: Mapping[str, object] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout_seconds: float | None = None,
    ) -> JsonValue:
        """Perform one logical request with retries.

        Raises:
            ClientError: For 4xx responses other than 429 (never retried)
            RateLimitError: For non-retryable 429s, or retryable ones that outlast the budget
            ServerError: If 5xx responses persist for every attempt
            TransportError: If network errors, timeouts or bad bodies persist
        """
        request_headers = {"User-Agent": USER_AGENT, **(headers or {})}
        body = dict(json_body) if json_body is not None else None
        if body is not None:
            request_headers.setdefault("Content-Type", "application/json")
        timeout = self.timeout_seconds if timeout_seconds is None else timeout_seconds

        self._log("%s %s", method, url)
        if body is not None:
            self._log("Payload keys: %s", ", ".join(body))

        last_error: HttpError | None = None
        for attempt in range(self.max_attempts):
            attempts_used = attempt + 1
            is_final_attempt = attempts_used >= self.max_attempts

            try:
                r = self.session.request(
                    method,
                    url,
                    json=body,
                    headers=request_headers,
                    timeout=timeout,
                )
            except (requests.Timeout, requests.ConnectionError) as exc:
                self._log("Connection error: %s: %s", type(exc).__name__, exc)
                last_error = TransportError(
                    f"Connection error: {type(exc).__name__}: {exc}",
                    method=method,
                    url=url,
                    attempts=attempts_used,
                )
            except requests.RequestException as exc:
                self._log("Request error: %s: %s", type(exc).__name__, exc)
                last_error = TransportError(
                    f"Request error: {type(exc).__name__}: {exc}",
                    method=method,
                    url=url,
                    attempts=attempts_used,
                )
            else:
                text = _response_text(r)
                self._log("Response: %s (%s bytes)", r.status_code, len(text))

                if 200 <= r.status_code < 300:
                    if not text.strip():
                        return {}
                    try:
                        return validate_json_value(text)
                    except IncomingDataError as exc:
                        self._log("Invalid JSON response: %s", exc)
                        last_error = TransportError(
                            "Invalid JSON response",
                            status_code=r.status_code,
                            body=text[:500],
                            method=method,
                            url=url,
                            attempts=attempts_used,
                        )
                else:
                    last_error = self._status_error(r, text, method, url, attempt)
                    if isinstance(last_error, RateLimitError):
                        if not last_error.retryable or is_final_attempt:
                            raise last_error
                        wait = last_error.retry_after_seconds or self.backoff.compute_delay(
                            attempt
                        )
                        self._log(
                            "Rate limited; retrying in %.2fs (attempt %s/%s)",
                            wait,
                            attempts_used,
                            self.max_attempts,
                        )
                        self._sleep(wait)
                        continue
                    if isinstance(last_error, ClientError):
                        raise last_error

            if not is_final_attempt:
                wait = self.backoff.compute_delay(attempt)
                self._log(
                    "Retrying in %.2fs (attempt %s/%s)", wait, attempts_used, self.max_attempts
                )
                self._sleep(wait)

        if last_error is not None:
            raise last_error
        raise TransportError("Request failed with no error details", method=method, url=url)

    def _status_error(
        self,
        r: requests.Response,
        text: str,
        method: str,
        url: str,
        attempt: int,
    ) -> HttpError:
        meta = parse_provider_error(text)
        request_id = r.headers.get(REQUEST_ID_HEADER) if r.headers is not None else None
        self._log(
            "HTTP Error %s: %s%s",
            r.status_code,
            r.reason,
            f" request_id={request_id}" if request_id else "",
        )
        if text:
            self._log("Error body: %s", _response_details(r))

        if r.status_code == 429:
            signal = self.backoff.rate_limit_signal(attempt, r.headers, text)
            return RateLimitError(
                "HTTP 429: rate limited"
                if signal.retryable
                else "HTTP 429: non-retryable quota/billing limit",
                retryable=signal.retryable,
                attempts=attempt + 1,
                retry_after_seconds=signal.delay_seconds,
                ratelimit_reset_seconds=signal.reset_seconds,
                body=text,
                method=method,
                url=url,
                request_id=request_id,
                error_code=meta.code or signal.code,
                error_type=meta.type,
            )

        error_cls = ClientError if 400 <= r.status_code < 500 else ServerError
        return error_cls(
            f"HTTP {r.status_code}: {r.reason}",
            status_code=r.status_code,
            body=text,
            method=method,
            url=url,
            request_id=request_id,
            error_code=meta.code,
            error_type=meta.type,
            attempts=attempt + 1,
        )

    def get_json(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout_seconds: float | None = None,
    ) -> JsonValue:
        return self.request("GET", url, headers=headers, timeout_seconds=timeout_seconds)

    def post_json(
        self,
        url: str,
        json_body: Mapping[str, object],
        *,
        headers: Mapping[str, str] | None = None,
        timeout_seconds: float | None = None,
    ) -> JsonValue:
        return self.request(
            "POST", url, json_body=json_body, headers=headers, timeout_seconds=timeout_seconds
        )

