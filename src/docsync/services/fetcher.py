from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import requests
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from docsync.domain.errors import ApiError, AuthenticationError, TransientApiError

log = logging.getLogger("docsync.fetch")

RETRYABLE_STATUS = frozenset({429, 500, 502, 503})
AUTH_STATUS = frozenset({401, 403})


class RateLimiter:
    """
    Client-side ceiling on calls per minute.

    Calls are spaced at least 60 / calls_per_minute seconds apart, measured on
    a monotonic clock, so sustained throughput never exceeds the ceiling no
    matter how long each call takes. Optionally every `pause_every` calls the
    spacing is stretched to `pause_seconds`.
    """

    def __init__(
        self,
        calls_per_minute: int,
        pause_every: int = 0,
        pause_seconds: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if calls_per_minute <= 0:
            raise ValueError("calls_per_minute must be > 0")
        self.min_interval = 60.0 / float(calls_per_minute)
        self.pause_every = int(pause_every)
        self.pause_seconds = float(pause_seconds)
        self.clock = clock
        self.sleep = sleep
        self.calls = 0
        self._last_call: Optional[float] = None

    def wait(self) -> float:
        delay = 0.0
        if self._last_call is not None:
            delay = self.min_interval - (self.clock() - self._last_call)
            if self.pause_every and self.calls % self.pause_every == 0:
                delay = max(delay, self.pause_seconds)
            if delay > 0:
                self.sleep(delay)
        self._last_call = self.clock()
        self.calls += 1
        return max(delay, 0.0)


def _log_backoff(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
    log.warning("fetch_backoff attempt=%s wait=%.2f error=%s", retry_state.attempt_number, wait, error)


class RetryPolicy:
    """Bounded exponential backoff: base_delay * 2**(attempt-1), capped at max_delay."""

    def __init__(
        self,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = int(max_attempts)
        self.base_delay = float(base_delay)
        self.max_delay = float(max_delay)
        self.sleep = sleep

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay),
            retry=retry_if_exception_type(TransientApiError),
            before_sleep=_log_backoff,
            sleep=self.sleep,
            reraise=True,
        )

    def call(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        return self._retrying()(fn, *args, **kwargs)


class RateLimitedFetcher:
    def __init__(
        self,
        base_url: str,
        api_token: str,
        limiter: RateLimiter,
        retry_policy: RetryPolicy,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.limiter = limiter
        self.retry = retry_policy
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def calls(self) -> int:
        return self.limiter.calls

    def fetch(self, path: str, params: Optional[dict] = None) -> Any:
        return self.retry.call(self._fetch_once, path, dict(params or {}))

    def _fetch_once(self, path: str, params: dict) -> Any:
        self.limiter.wait()
        url = f"{self.base_url}/{path.lstrip('/')}"
        query = dict(params)
        query["api_token"] = self.api_token

        try:
            r = self.session.get(url, params=query, timeout=self.timeout)
        except requests.Timeout as e:
            raise TransientApiError(f"Timeout calling {path}") from e
        except requests.ConnectionError as e:
            raise TransientApiError(f"Connection failed calling {path}: {e}") from e
        except requests.exceptions.ChunkedEncodingError as e:
            raise TransientApiError(f"Response from {path} was cut off: {e}") from e
        except requests.RequestException as e:
            raise ApiError(f"Request to {path} failed: {e}") from e

        status = int(r.status_code)
        if status in RETRYABLE_STATUS:
            raise TransientApiError(f"HTTP {status} from {path}", status_code=status)
        if status in AUTH_STATUS:
            raise AuthenticationError(f"HTTP {status} from {path}. Check the API token.", status_code=status)
        if status >= 400:
            raise ApiError(f"HTTP {status} from {path}: {r.text[:200]}", status_code=status)

        try:
            data = r.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON from {path}") from e
        log.debug("fetch_ok path=%s params=%s calls=%s", path, params, self.limiter.calls)
        return data
