"""
Backfills cover, hero and logo art from SteamGridDB for games whose primary
and storefront sources left those fields empty.
"""
from typing import Dict, Iterable, Optional

import structlog

from constants import EXTERNAL_SOURCE_STEAM, IMAGE_FIELDS, IMAGE_TYPES, SOURCE_STEAMGRIDDB
from exceptions import PlaydexException
from metrics import images_resolved_total

logger = structlog.get_logger("main")


class ImageResolver:
    def __init__(self, client, enabled: bool = True):
        self.client = client
        self.enabled = enabled

    @staticmethod
    def missing_types(game, types: Optional[Iterable[str]] = None):
        return [t for t in (types or IMAGE_TYPES) if not getattr(game, IMAGE_FIELDS[t])]

    @staticmethod
    def steam_app_id(game):
        for link in game.external_sources or []:
            source = link.external_game_source
            if source is not None and source.igdb_id == EXTERNAL_SOURCE_STEAM and link.external_uid:
                return link.external_uid
        return (game.steam_data or {}).get("steam_appid")

    def backfill(self, game, types: Optional[Iterable[str]] = None) -> Dict[str, str]:
        """
        Ask SteamGridDB for each requested type whose field is still empty.
        Fields that already hold an image id are never overwritten, and a failure
        for one type leaves that field empty without affecting the others.
        The caller commits.
        """
        found = {}
        if not self.enabled:
            return found

        steam_app_id = self.steam_app_id(game)
        for image_type in self.missing_types(game, types):
            try:
                filename = self.client.fetch_image(game.name, image_type, steam_app_id, game.igdb_id)
            except (PlaydexException, OSError) as e:
                images_resolved_total.labels(image_type=image_type, outcome="error").inc()
                logger.warning(
                    "Image backfill failed",
                    igdb_id=game.igdb_id,
                    source=SOURCE_STEAMGRIDDB,
                    image_type=image_type,
                    error=str(e),
                )
                continue

            if not filename:
                images_resolved_total.labels(image_type=image_type, outcome="missing").inc()
                continue

            setattr(game, IMAGE_FIELDS[image_type], filename)
            found[image_type] = filename
            images_resolved_total.labels(image_type=image_type, outcome="found").inc()

        if found:
            logger.info("Backfilled images", igdb_id=game.igdb_id, types=sorted(found))
        return found
