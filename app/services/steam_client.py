"""
Steam store client (``appdetails``). Several app ids are fetched in one call.
"""
import logging
from typing import Dict, Iterable

from constants import SOURCE_STEAM, STEAM_APPDETAILS_FILTERS, STEAM_APPDETAILS_URL
from metrics import track_upstream
from services.base_client import BaseClient

logger = logging.getLogger("main")


class SteamStoreClient(BaseClient):
    """Client for the Steam storefront API"""

    source = SOURCE_STEAM

    def __init__(self, country_code: str = "us", timeout: int = 15, **kwargs):
        super().__init__(timeout=timeout, **kwargs)
        self.country_code = country_code

    @track_upstream(SOURCE_STEAM)
    def get_app_details(self, app_ids: Iterable) -> Dict[str, Dict]:
        """
        Storefront detail for each app id, keyed by the app id as a string.
        Apps Steam reports as unsuccessful are left out.
        """
        ids = [str(a) for a in dict.fromkeys(app_ids) if a]
        if not ids:
            return {}

        response = self._send(
            "GET",
            STEAM_APPDETAILS_URL,
            params={"appids": ",".join(ids), "filters": STEAM_APPDETAILS_FILTERS, "cc": self.country_code},
        )
        data = self._json(response) or {}

        details = {}
        for app_id, info in data.items():
            if isinstance(info, dict) and info.get("success") and info.get("data"):
                details[str(app_id)] = info["data"]
            else:
                logger.debug(f"Steam appdetails unsuccessful for {app_id}")
        return details
