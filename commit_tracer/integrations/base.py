"""Base class for HTTP integrations (employee directory, issue tracker).

Provides the shared session handling, per-minute rate limiting and retry
with exponential backoff used by the concrete clients.
"""

from __future__ import annotations

import random
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, TypeVar

import requests

from ..tracer_logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

TRANSIENT_ERROR_MARKERS = (
    "rate limit",
    "timeout",
    "timed out",
    "connection",
    "429",
    "500",
    "502",
    "503",
    "504",
    "temporarily unavailable",
)


class IntegrationClient(ABC):
    """Common plumbing for REST clients.

    Subclasses set the auth headers on ``self._session`` and call
    :meth:`_request`, which applies rate limiting and retries transient
    failures before raising.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        requests_per_minute: int = 60,
        timeout: float | tuple[float, float] = (10.0, 30.0),
    ):
        """Initialize the integration client.

        Args:
            api_key: Token used for authentication
            base_url: API root, without trailing slash
            max_retries: Maximum number of retry attempts
            base_delay: Base delay for exponential backoff (seconds)
            max_delay: Maximum delay between retries (seconds)
            requests_per_minute: Rate limit (requests per minute)
            timeout: ``requests`` timeout (connect, read)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._requests_per_minute = requests_per_minute
        self._request_times: list[float] = []
        self._session = requests.Session()

    @property
    @abstractmethod
    def service_name(self) -> str:
        """Short name used in log messages."""

    def close(self) -> None:
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _check_rate_limits(self) -> None:
        """Block until another request fits into the per-minute budget."""
        current_time = time.time()
        self._request_times = [t for t in self._request_times if current_time - t < 60]

        if len(self._request_times) >= self._requests_per_minute:
            sleep_time = 60 - (current_time - self._request_times[0]) + 1
            if sleep_time > 0:
                logger.debug(f"{self.service_name}: rate limit reached, sleeping {sleep_time:.1f}s")
                time.sleep(sleep_time)

    def _record_request(self) -> None:
        self._request_times.append(time.time())

    def _calculate_delay(self, attempt: int) -> float:
        """Exponential backoff with 10-30% jitter.

        Args:
            attempt: Current attempt number (0-indexed)
        """
        delay = min(self.base_delay * (2**attempt), self.max_delay)
        jitter = random.uniform(0.1, 0.3) * delay
        return delay + jitter

    def _should_retry(self, error: Exception, attempt: int) -> bool:
        if attempt >= self.max_retries:
            return False
        if isinstance(error, (requests.ConnectionError, requests.Timeout)):
            return True
        error_str = str(error).lower()
        return any(marker in error_str for marker in TRANSIENT_ERROR_MARKERS)

    def _execute_with_retry(self, operation: Callable[[], T]) -> T:
        """Run ``operation``, retrying transient failures.

        Raises:
            Exception: The last error once retries are exhausted or the error
                is not transient
        """
        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                self._check_rate_limits()
                result = operation()
                self._record_request()
                return result
            except Exception as e:
                last_error = e
                self._record_request()
                if not self._should_retry(e, attempt):
                    raise
                delay = self._calculate_delay(attempt)
                logger.debug(
                    f"{self.service_name}: attempt {attempt + 1} failed ({e}), "
                    f"retrying in {delay:.1f}s"
                )
                time.sleep(delay)
        if last_error:
            raise last_error
        raise RuntimeError(f"{self.service_name}: no attempt made (max_retries={self.max_retries})")

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """Make a request against the API and decode the JSON body.

        Raises:
            requests.HTTPError: If the response status is not 2xx
            ValueError: If the body is not valid JSON
        """

        def _do_request() -> Any:
            url = f"{self.base_url}{endpoint}"
            response = self._session.request(
                method, url, params=params, json=json_body, timeout=self.timeout
            )
            response.raise_for_status()
            return response.json()

        return self._execute_with_retry(_do_request)
