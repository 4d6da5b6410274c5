"""Rate-limit aware HTTP client for the museum collection API."""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Mapping

import requests
from requests import Session
from tenacity import (  # type: ignore[import-untyped]
    RetryCallState,
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)

from ..config import MET_API_BASE, USER_AGENT

logger = logging.getLogger(__name__)

THROTTLE_STATUSES = frozenset({403, 429})

Jitter = Callable[[], float]
Sleep = Callable[[float], None]


class MetApiError(Exception):
    """Base class for collection API failures."""


class ThrottledRetryable(MetApiError):
    """Raised for throttling responses that should be retried after a backoff."""

    def __init__(self, status_code: int, url: str) -> None:
        super().__init__(f"Throttled with status {status_code}: {url}")
        self.status_code = status_code
        self.url = url


class ExhaustedRetries(MetApiError):
    """Raised once the retry budget is consumed while still throttled."""

    def __init__(self, url: str, attempts: int) -> None:
        super().__init__(f"Rate-limited too long after {attempts} attempts: {url}")
        self.url = url
        self.attempts = attempts


class RequestFailed(MetApiError):
    """Raised for non-throttling failures. Never retried."""

    def __init__(self, status_code: int | None, url: str, reason: str = "") -> None:
        detail = f" ({reason})" if reason else ""
        super().__init__(f"Request failed {status_code} {url}{detail}")
        self.status_code = status_code
        self.url = url


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """Return the pre-jitter delay before retry number *attempt* (0-based)."""
    return min(cap, base * (2**attempt))


def uniform_jitter(max_seconds: float) -> Jitter:
    """Return a jitter source drawing uniformly from ``[0, max_seconds]``."""
    return lambda: random.uniform(0.0, max_seconds)


def no_jitter() -> float:
    return 0.0


class RateLimitedClient:
    """Issue GET requests, backing off on 403/429 with capped exponential delays.

    Throttling responses and transport errors (timeouts, dropped connections) are
    retried up to ``max_retries`` times per call. Every other non-2xx status raises
    :class:`RequestFailed` on the first attempt.
    """

    def __init__(
        self,
        session: Session | None = None,
        user_agent: str = USER_AGENT,
        timeout: float = 30.0,
        backoff_base: float = 2.0,
        backoff_cap: float = 180.0,
        jitter: Jitter | None = None,
        sleep: Sleep = time.sleep,
    ) -> None:
        self._session = session or requests.Session()
        self._headers = {"User-Agent": user_agent, "Accept": "application/json"}
        self._timeout = timeout
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self._jitter = jitter if jitter is not None else uniform_jitter(1.0)
        self._sleep = sleep

    def fetch_json(
        self, url: str, max_retries: int, params: Mapping[str, Any] | None = None
    ) -> Any:
        """GET *url* and return the decoded JSON body."""
        response = self._call(url, max_retries, params)
        try:
            return response.json()
        except ValueError as exc:
            raise RequestFailed(response.status_code, url, "invalid JSON body") from exc

    def fetch_bytes(self, url: str, max_retries: int) -> bytes:
        """GET *url* and return the raw response body."""
        return self._call(url, max_retries, None).content

    def _wait(self, retry_state: RetryCallState) -> float:
        attempt = retry_state.attempt_number - 1
        return backoff_delay(attempt, self.backoff_base, self.backoff_cap) + self._jitter()

    def _retryer(self, max_retries: int) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(max_retries + 1),
            wait=self._wait,
            retry=retry_if_exception_type(
                (ThrottledRetryable, requests.Timeout, requests.ConnectionError)
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
        )

    def _call(
        self, url: str, max_retries: int, params: Mapping[str, Any] | None
    ) -> requests.Response:
        try:
            return self._retryer(max_retries)(self._get_once, url, params)
        except RetryError as exc:
            raise ExhaustedRetries(url, max_retries + 1) from exc

    def _get_once(self, url: str, params: Mapping[str, Any] | None) -> requests.Response:
        response = self._session.get(
            url, params=params, headers=self._headers, timeout=self._timeout
        )
        status = response.status_code
        if status in THROTTLE_STATUSES:
            raise ThrottledRetryable(status, url)
        if not 200 <= status < 300:
            raise RequestFailed(status, url)
        return response


class MetApi:
    """Search and object endpoints of the collection API on top of a client."""

    def __init__(self, client: RateLimitedClient, base_url: str = MET_API_BASE) -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")

    def search(self, query: str, max_retries: int) -> list[int]:
        """Return object ids with images matching *query* on artist or culture.

        Raises :class:`ExhaustedRetries` or :class:`RequestFailed`; an artist scan
        cannot proceed without its id list.
        """
        params = {"hasImages": "true", "artistOrCulture": "true", "q": query}
        payload = self.client.fetch_json(f"{self.base_url}/search", max_retries, params)
        ids = payload.get("objectIDs") if isinstance(payload, dict) else None
        if not ids:
            return []
        return [int(value) for value in ids]

    def get_object(self, object_id: int, max_retries: int) -> dict[str, Any] | None:
        """Return the object record, or ``None`` when it cannot be fetched."""
        url = f"{self.base_url}/objects/{object_id}"
        try:
            payload = self.client.fetch_json(url, max_retries)
        except ExhaustedRetries as exc:
            logger.warning("Giving up on object %s: %s", object_id, exc)
            return None
        except RequestFailed as exc:
            logger.info("Object %s unavailable: %s", object_id, exc)
            return None
        return payload if isinstance(payload, dict) else None
