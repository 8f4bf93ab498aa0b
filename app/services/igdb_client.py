"""
IGDB v4 client.

Queries are plain-text Apicalypse bodies POSTed to ``/v4/<endpoint>``.
Authentication uses a shared TokenCache; a 401 invalidates the token and the
request is retried once with a fresh one.
"""
import logging
from typing import Dict, Iterable, List, Optional

from constants import DEFAULT_PLATFORM_IDS, IGDB_BASE_URL, IGDB_GAME_FIELDS, IGDB_MAX_LIMIT, SOURCE_IGDB
from exceptions import NotFoundException, UpstreamException
from metrics import track_upstream
from services.base_client import BaseClient

logger = logging.getLogger("main")


class IGDBClient(BaseClient):
    """Client for the IGDB API"""

    source = SOURCE_IGDB

    def __init__(self, client_id: str, token_cache, rate_limit_delay: float = 0.28, timeout: int = 15, **kwargs):
        super().__init__(rate_limit_delay=rate_limit_delay, timeout=timeout, **kwargs)
        self.client_id = client_id
        self.token_cache = token_cache

    def _headers(self) -> Dict[str, str]:
        return {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {self.token_cache.get_token()}",
            "Content-Type": "text/plain",
        }

    @track_upstream(SOURCE_IGDB)
    def query(self, endpoint: str, body: str) -> List[Dict]:
        """Run one Apicalypse query and return the decoded row list"""
        url = f"{IGDB_BASE_URL}/{endpoint}"
        try:
            response = self._send("POST", url, data=body, headers=self._headers())
        except UpstreamException as e:
            if e.status_code != 401:
                raise
            logger.info("IGDB token rejected, refreshing and retrying once")
            self.token_cache.invalidate()
            response = self._send("POST", url, data=body, headers=self._headers())

        data = self._json(response)
        if not isinstance(data, list):
            raise UpstreamException(f"IGDB returned unexpected payload for {endpoint}", source=self.source)
        return data

    def fetch_game(self, igdb_id: int) -> Dict:
        """Fetch one game with the full field projection. Raises NotFoundException when IGDB has no row."""
        rows = self.query("games", f"fields {IGDB_GAME_FIELDS}; where id = {int(igdb_id)}; limit 1;")
        if not rows:
            raise NotFoundException(f"IGDB game {igdb_id} not found", source=self.source)
        return rows[0]

    def fetch_games(self, igdb_ids: Iterable[int]) -> List[Dict]:
        """Fetch several games, IGDB_MAX_LIMIT ids per query. Missing ids are simply absent."""
        ids = [int(i) for i in igdb_ids]
        games = []
        for start in range(0, len(ids), IGDB_MAX_LIMIT):
            chunk = ids[start:start + IGDB_MAX_LIMIT]
            id_list = ",".join(str(i) for i in chunk)
            games.extend(
                self.query("games", f"fields {IGDB_GAME_FIELDS}; where id = ({id_list}); limit {len(chunk)};")
            )
        return games

    def fetch_games_released_between(
        self,
        start_ts: int,
        end_ts: int,
        platform_ids: Optional[List[int]] = None,
        limit: int = IGDB_MAX_LIMIT,
        offset: int = 0,
    ) -> List[Dict]:
        """Games on the given platforms with first_release_date in [start_ts, end_ts), earliest first"""
        platform_ids = platform_ids or DEFAULT_PLATFORM_IDS
        body = (
            f"fields {IGDB_GAME_FIELDS}; "
            f"where platforms = ({','.join(str(p) for p in platform_ids)}) "
            f"& first_release_date >= {int(start_ts)} & first_release_date < {int(end_ts)}; "
            f"sort first_release_date asc; "
            f"limit {min(int(limit), IGDB_MAX_LIMIT)}; "
            f"offset {int(offset)};"
        )
        return self.query("games", body)

    def fetch_external_game_sources(self) -> List[Dict]:
        """All external game source definitions ({id, name})"""
        sources = []
        offset = 0
        while True:
            rows = self.query(
                "external_game_sources", f"fields id, name; sort id asc; limit {IGDB_MAX_LIMIT}; offset {offset};"
            )
            sources.extend(rows)
            if len(rows) < IGDB_MAX_LIMIT:
                return sources
            offset += IGDB_MAX_LIMIT
