"""
Shared plumbing for the external source clients: a requests session, a
minimum delay between calls, and translation of transport/HTTP failures into
UpstreamException / RateLimitedException.
"""
import time
import logging

import requests

from exceptions import RateLimitedException, UpstreamException

logger = logging.getLogger("main")


class BaseClient:
    source = "unknown"
    user_agent = "Playdex Game Catalog Sync"

    def __init__(self, session=None, rate_limit_delay: float = 0.0, timeout: int = 15, sleep=time.sleep):
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": self.user_agent})
        self.rate_limit_delay = rate_limit_delay
        self.timeout = timeout
        self.sleep = sleep
        self.last_request_time = 0

    def _rate_limit(self):
        """Ensure we don't exceed rate limits"""
        elapsed = time.time() - self.last_request_time
        if elapsed < self.rate_limit_delay:
            self.sleep(self.rate_limit_delay - elapsed)
        self.last_request_time = time.time()

    def _send(self, method, url, **kwargs):
        """Send one request and return the response, raising on anything but 2xx"""
        self._rate_limit()
        kwargs.setdefault("timeout", self.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.Timeout as e:
            raise UpstreamException(f"{self.source} request timed out: {e}", source=self.source)
        except requests.RequestException as e:
            raise UpstreamException(f"{self.source} request failed: {e}", source=self.source)

        if response.status_code == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitedException(f"{self.source} rate limit exceeded", source=self.source, retry_after=retry_after)
        if response.status_code >= 400:
            raise UpstreamException(
                f"{self.source} returned HTTP {response.status_code}: {response.text[:200]}",
                source=self.source,
                status_code=response.status_code,
            )
        return response

    def _json(self, response):
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamException(f"{self.source} returned malformed JSON: {e}", source=self.source)


def _parse_retry_after(value):
    if not value:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
