"""Rate-limited HTTP client for regulatory source sites.

Government sites throttle aggressively. Every request goes through a
per-domain minimum interval and is classified before the retry executor
sees it:

- 404 -> NotFoundError (permanent, never retried)
- 429 -> RateLimitedError carrying the Retry-After delay
- other non-2xx and network errors -> TransientFetchError
"""

import logging
import threading
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable
from urllib.parse import urlparse

import requests

from regindex.errors import NotFoundError, RateLimitedError, TransientFetchError
from regindex.fetching.retry import RetryConfig, retry

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL = 0.2
DEFAULT_USER_AGENT = "regindex-bot/1.0 (regulatory research crawler)"
DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Parse a Retry-After header into seconds.

    Accepts delta-seconds ("120") or an HTTP-date. Returns None when the
    header is missing or unparseable; dates in the past yield 0.
    """
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return float(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


class DomainThrottle:
    """Shared domain -> last-request-time map guarded by a lock.

    The lock only protects the map; the sleep happens outside it, so two
    threads hitting the same domain at the same instant may still land a
    little closer together than the interval. The retry executor absorbs
    that case.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._last_request: dict[str, float] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._sleep = sleep

    def wait(self, domain: str, min_interval: float) -> float:
        """Sleep until ``min_interval`` has passed since the last request to ``domain``.

        Records the new request time and returns the number of seconds slept.
        """
        with self._lock:
            last = self._last_request.get(domain)
        waited = 0.0
        if last is not None:
            elapsed = self._clock() - last
            if elapsed < min_interval:
                waited = min_interval - elapsed
                self._sleep(waited)
        with self._lock:
            self._last_request[domain] = self._clock()
        return waited

    def last_request(self, domain: str) -> float | None:
        with self._lock:
            return self._last_request.get(domain)


# Process-wide throttle shared by every client unless one is injected
_shared_throttle = DomainThrottle()


class RateLimitedClient:
    """HTTP GET client with per-domain throttling and classified retries."""

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 30.0,
        retry_config: RetryConfig | None = None,
        session: requests.Session | None = None,
        throttle: DomainThrottle | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval = min_interval
        self.user_agent = user_agent
        self.timeout = timeout
        self.retry_config = retry_config
        self._session = session or requests.Session()
        self._throttle = throttle or _shared_throttle
        self._sleep = sleep

    def fetch(
        self,
        url: str,
        label: str,
        min_interval: float | None = None,
        headers: dict[str, str] | None = None,
        retry_config: RetryConfig | None = None,
    ) -> requests.Response:
        """Fetch ``url`` and return the successful response.

        Raises NotFoundError immediately on 404; raises the last
        RateLimitedError / TransientFetchError once retries run out.
        """
        interval = self.min_interval if min_interval is None else min_interval
        domain = urlparse(url).hostname or url
        request_headers = {"User-Agent": self.user_agent, "Accept": DEFAULT_ACCEPT}
        if headers:
            request_headers.update(headers)

        def attempt() -> requests.Response:
            self._throttle.wait(domain, interval)
            return self._get(url, request_headers)

        return retry(attempt, label, retry_config or self.retry_config, sleep=self._sleep)

    def fetch_text(self, url: str, label: str, **kwargs) -> str:
        return self.fetch(url, label, **kwargs).text

    def fetch_json(self, url: str, label: str, **kwargs):
        return self.fetch(url, label, **kwargs).json()

    def _get(self, url: str, headers: dict[str, str]) -> requests.Response:
        try:
            resp = self._session.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransientFetchError(f"Request failed for {url}: {e}") from e

        logger.debug("GET %s -> %d", url, resp.status_code)
        if resp.status_code == 404:
            raise NotFoundError(f"Resource not found: {url}", url=url)
        if resp.status_code == 429:
            retry_after = parse_retry_after(resp.headers.get("Retry-After"))
            raise RateLimitedError(f"Rate limited: {url}", retry_after=retry_after)
        if not 200 <= resp.status_code < 300:
            raise TransientFetchError(
                f"HTTP {resp.status_code}: {resp.reason} for {url}",
                status_code=resp.status_code,
            )
        return resp
