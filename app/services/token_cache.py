"""
OAuth token cache for the IGDB API (Twitch client-credentials flow).

One instance is built per process by the service factory and handed to the
IGDB client, so the token is shared without class-level globals.
"""
import threading
import time
import logging

import requests

from constants import SOURCE_IGDB, TWITCH_TOKEN_URL
from exceptions import UpstreamException

logger = logging.getLogger("main")


class TokenCache:
    """Caches an access token until shortly before it expires"""

    # Refresh this many seconds before the advertised expiry
    EXPIRY_MARGIN = 60

    def __init__(self, client_id: str, client_secret: str, session=None, clock=time.time, timeout: int = 10):
        self.client_id = client_id
        self.client_secret = client_secret
        self.session = session or requests.Session()
        self.clock = clock
        self.timeout = timeout
        self._token = None
        self._expires_at = 0.0
        self._lock = threading.Lock()

    @property
    def expires_at(self):
        return self._expires_at

    def is_valid(self) -> bool:
        return bool(self._token) and self._expires_at > self.clock() + self.EXPIRY_MARGIN

    def get_token(self) -> str:
        """Return a valid token, requesting a new one when missing or about to expire"""
        with self._lock:
            if self.is_valid():
                return self._token
            return self._refresh()

    def invalidate(self):
        """Drop the cached token (e.g. after a 401)"""
        with self._lock:
            self._token = None
            self._expires_at = 0.0

    def _refresh(self) -> str:
        if not self.client_id or not self.client_secret:
            raise UpstreamException("IGDB credentials are not configured", source=SOURCE_IGDB)

        try:
            response = self.session.post(
                TWITCH_TOKEN_URL,
                params={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
            token = data["access_token"]
            expires_in = float(data.get("expires_in", 0))
        except (requests.RequestException, ValueError, KeyError) as e:
            raise UpstreamException(f"IGDB auth failed: {e}", source=SOURCE_IGDB)

        self._token = token
        self._expires_at = self.clock() + expires_in
        logger.info(f"Obtained IGDB access token (expires in {int(expires_in)}s)")
        return token
