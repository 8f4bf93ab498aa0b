"""
SteamSpy client. SteamSpy answers 200 with ``{"error": ...}`` or an empty
object for unknown apps; both are treated as failures.
"""
import logging
from typing import Dict

from constants import SOURCE_STEAMSPY, STEAMSPY_BASE_URL
from exceptions import UpstreamException
from metrics import track_upstream
from services.base_client import BaseClient

logger = logging.getLogger("main")


class SteamSpyClient(BaseClient):
    """Client for the SteamSpy API"""

    source = SOURCE_STEAMSPY

    def __init__(self, rate_limit_delay: float = 0.25, timeout: int = 15, **kwargs):
        super().__init__(rate_limit_delay=rate_limit_delay, timeout=timeout, **kwargs)

    @track_upstream(SOURCE_STEAMSPY)
    def fetch_game_details(self, app_id) -> Dict:
        """Owner/playtime/price statistics for one Steam app"""
        response = self._send("GET", STEAMSPY_BASE_URL, params={"request": "appdetails", "appid": app_id})
        data = self._json(response)
        if not data or not isinstance(data, dict) or "error" in data:
            error = data.get("error") if isinstance(data, dict) else None
            raise UpstreamException(f"SteamSpy has no data for app {app_id}: {error or 'empty response'}",
                                    source=self.source)
        return data
