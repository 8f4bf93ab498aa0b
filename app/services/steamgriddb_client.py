"""
SteamGridDB client: search a game by name, pick a grid matching the wanted
image type and download it into the covers directory.
"""
import os
import time
import logging
from typing import Dict, List, Optional
from urllib.parse import quote, urlparse

from constants import COVERS_DIR, SOURCE_STEAMGRIDDB, STEAMGRIDDB_BASE_URL
from metrics import track_upstream
from services.base_client import BaseClient

logger = logging.getLogger("main")

# Preferred grid styles per image type, in order
GRID_STYLES = {
    "hero": ["hero", "alternate"],
    "logo": ["logo"],
    "cover": ["alternate"],
}


def select_grid(grids: List[Dict], image_type: str) -> Optional[Dict]:
    """Pick the first grid with a preferred style, else the first grid"""
    for style in GRID_STYLES.get(image_type, []):
        for grid in grids:
            if grid.get("style") == style:
                return grid
    return grids[0] if grids else None


class SteamGridDBClient(BaseClient):
    """Client for the SteamGridDB API"""

    source = SOURCE_STEAMGRIDDB

    def __init__(self, api_key: str, covers_dir: str = COVERS_DIR, timeout: int = 10, clock=time.time, **kwargs):
        super().__init__(timeout=timeout, **kwargs)
        self.api_key = api_key
        self.covers_dir = covers_dir
        self.clock = clock

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _auth(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def search(self, name: str, steam_app_id=None) -> Optional[int]:
        """SteamGridDB game id for ``name``. With a Steam app id, results known to Steam are preferred."""
        response = self._send("GET", f"{STEAMGRIDDB_BASE_URL}/search/autocomplete/{quote(name, safe='')}",
                              headers=self._auth())
        results = (self._json(response) or {}).get("data") or []
        if not results:
            return None
        if steam_app_id:
            for result in results:
                if "steam" in (result.get("types") or []) and result.get("id"):
                    return result["id"]
        return results[0].get("id")

    def grids(self, game_id: int) -> List[Dict]:
        response = self._send("GET", f"{STEAMGRIDDB_BASE_URL}/grids/game/{game_id}", headers=self._auth())
        return (self._json(response) or {}).get("data") or []

    def download(self, url: str, basename: str) -> str:
        """Save ``url`` into the covers directory and return the local filename"""
        response = self._send("GET", url, timeout=15)
        extension = os.path.splitext(urlparse(url).path)[1].lstrip(".") or "jpg"
        filename = f"{basename}_{int(self.clock())}.{extension}"
        os.makedirs(self.covers_dir, exist_ok=True)
        with open(os.path.join(self.covers_dir, filename), "wb") as f:
            f.write(response.content)
        return filename

    @track_upstream(SOURCE_STEAMGRIDDB)
    def fetch_image(self, name: str, image_type: str = "cover", steam_app_id=None, igdb_id=None) -> Optional[str]:
        """
        Download one image of ``image_type`` (cover, hero or logo) for the game.
        Returns the stored filename, or None when nothing suitable was found.
        Transport errors are raised as UpstreamException.
        """
        if not self.enabled:
            logger.warning("SteamGridDB API key not configured")
            return None

        game_id = self.search(name, steam_app_id)
        if not game_id:
            return None

        grid = select_grid(self.grids(game_id), image_type)
        if not grid or not grid.get("url"):
            return None

        filename = self.download(grid["url"], igdb_id or steam_app_id or "game")
        logger.info(f"Downloaded SteamGridDB {image_type} image for {name}: {filename}")
        return filename
