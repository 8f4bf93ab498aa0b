"""
Service layer for enriching catalog games from IGDB and the Steam store.

One pass: fetch the IGDB payload, locate the Steam app id, fetch storefront
detail for every Steam id of the batch in one call, merge, upsert the game
keyed on igdb_id, then reconcile relations, release dates and external source
links, backfill missing art and recompute the update priority.

Merge rule, per field: IGDB value if present, else the value already stored,
else the storefront value. Storefront data never replaces an IGDB value.
"""
import hashlib
import json
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError

from constants import SOURCE_IGDB, SOURCE_STEAM, SOURCE_STEAMGRIDDB
from db import db, upsert_insert
from exceptions import PlaydexException, UpstreamException
from models import Game
from repositories.externalsources_repository import ExternalSourcesRepository
from repositories.games_repository import GamesRepository
from services.payload import PartialGame
from utils import ensure_utc, now_utc, parse_steam_date, slugify

logger = structlog.get_logger("main")

PLACEHOLDER_NAME = "Unknown Game"
HASHED_FIELDS = (
    "name",
    "slug",
    "summary",
    "first_release_date",
    "game_type",
    "cover_image_id",
    "hero_image_id",
    "screenshots",
    "trailers",
    "similar_games",
)


@dataclass
class EnrichResult:
    game: Game
    created: bool
    changed: bool


def _present(value):
    return value is not None and value != "" and value != []


def merge_value(primary, existing, storefront=None):
    """IGDB value if present, else the stored value, else the storefront value"""
    if _present(primary):
        return primary
    if _present(existing):
        return existing
    return storefront if _present(storefront) else None


def storefront_values(steam_data: Optional[Dict]) -> Dict:
    """Fields the Steam store can supplement, in Game column terms"""
    if not steam_data:
        return {}
    release = steam_data.get("release_date") or {}
    release_date = None
    if not release.get("coming_soon"):
        release_date = parse_steam_date(release.get("date"))
    return {
        "name": steam_data.get("name"),
        "summary": steam_data.get("short_description"),
        "first_release_date": release_date,
        "cover_image_id": steam_data.get("header_image"),
        "hero_image_id": steam_data.get("background"),
    }


def _normalize(value):
    if isinstance(value, dict):
        return {k: _normalize(v) for k, v in value.items()}
    if hasattr(value, "tzinfo"):
        return ensure_utc(value).isoformat()
    return value


def data_hash(partial: PartialGame) -> str:
    """
    md5 over what IGDB and the storefront sent. Stored values and backfilled
    art are left out, so a repeat pass over the same upstream data matches.
    """
    values = {field: getattr(partial, field) for field in HASHED_FIELDS}
    values["storefront"] = storefront_values(partial.steam_data)
    values["steam_data"] = partial.steam_data
    relations = {kind: sorted(r["igdb_id"] for r in refs) if refs is not None else None
                 for kind, refs in partial.relations.items()}
    critical = {
        "fields": _normalize(values),
        "relations": relations,
        "companies": partial.companies,
        "release_dates": partial.release_dates,
        "external_sources": [(s.source_id, s.external_uid, s.external_url) for s in partial.external_sources],
    }
    return hashlib.md5(json.dumps(critical, sort_keys=True, default=str).encode("utf-8")).hexdigest()


class SourceEnricher:
    def __init__(
        self,
        igdb_client,
        steam_client,
        reconciler,
        image_resolver,
        priority_service,
        active_sources: Iterable[int] = (1,),
        fetch_images: bool = True,
    ):
        self.igdb = igdb_client
        self.steam = steam_client
        self.reconciler = reconciler
        self.images = image_resolver
        self.priority = priority_service
        self.active_sources = [int(s) for s in active_sources]
        self.fetch_images = fetch_images

    # Entry points

    def enrich(self, igdb_id: int, force: bool = False, backfill_images: Optional[bool] = None) -> EnrichResult:
        """
        Fetch and persist one game. Raises NotFoundException when IGDB has no
        row for ``igdb_id`` and UpstreamException when IGDB cannot be reached.
        """
        payload = self.igdb.fetch_game(igdb_id)
        partial = PartialGame.from_igdb(payload)
        self.attach_storefront([partial])
        return self.apply(partial, force=force, backfill_images=backfill_images)

    def enrich_many(self, igdb_ids: Iterable[int], force: bool = False) -> List[EnrichResult]:
        """Fetch several games with one IGDB query and one storefront call"""
        return self.enrich_payloads(self.igdb.fetch_games(igdb_ids), force=force)

    def enrich_payloads(self, payloads: List[Dict], force: bool = False) -> List[EnrichResult]:
        """Persist already fetched IGDB payloads. A game that fails to persist is logged and skipped."""
        partials = [PartialGame.from_igdb(p) for p in payloads if p.get("id") is not None]
        self.attach_storefront(partials)

        results = []
        for partial in partials:
            try:
                results.append(self.apply(partial, force=force))
            except (PlaydexException, SQLAlchemyError) as e:
                logger.error("Failed to store game", igdb_id=partial.igdb_id, source=SOURCE_IGDB, error=str(e))
        return results

    def fetch_if_missing(self, igdb_id: int, backfill_images: Optional[bool] = None) -> Game:
        """Stored game for ``igdb_id``, enriching it first when the catalog does not have it yet"""
        game = GamesRepository.get_by_igdb_id(igdb_id)
        if game is not None:
            return game
        logger.info("Game not in catalog, fetching", igdb_id=igdb_id)
        return self.enrich(igdb_id, backfill_images=backfill_images).game

    # Steps

    def attach_storefront(self, partials: List[PartialGame]):
        """One storefront call for every Steam id of the batch. Storefront failures are not fatal."""
        app_ids = [p.steam_app_id for p in partials if p.steam_app_id]
        if not app_ids:
            return
        try:
            details = self.steam.get_app_details(app_ids)
        except UpstreamException as e:
            logger.warning("Storefront lookup failed", source=SOURCE_STEAM, app_ids=app_ids, error=str(e))
            return
        for partial in partials:
            if partial.steam_app_id:
                partial.steam_data = details.get(str(partial.steam_app_id))

    def _find_or_create(self, partial: PartialGame):
        game = GamesRepository.get_by_igdb_id(partial.igdb_id)
        if game is not None:
            return game, False
        stmt = (
            upsert_insert(Game)
            .values(igdb_id=partial.igdb_id, name=partial.name or PLACEHOLDER_NAME)
            .on_conflict_do_nothing(index_elements=["igdb_id"])
        )
        result = db.session.execute(stmt)
        return GamesRepository.get_by_igdb_id(partial.igdb_id), result.rowcount == 1

    def merge(self, game: Optional[Game], partial: PartialGame) -> Dict:
        """Merged column values for ``partial`` over ``game`` (None for a new game)"""

        def stored(field):
            return getattr(game, field) if game is not None else None

        steam = storefront_values(partial.steam_data)
        values = {}
        for field in ("name", "summary", "first_release_date", "cover_image_id", "hero_image_id"):
            values[field] = merge_value(getattr(partial, field), stored(field), steam.get(field))
        for field in ("game_type", "screenshots", "trailers", "similar_games"):
            values[field] = merge_value(getattr(partial, field), stored(field))

        values["name"] = values["name"] or PLACEHOLDER_NAME
        values["slug"] = merge_value(partial.slug, stored("slug"), slugify(values["name"]))
        values["game_type"] = values["game_type"] or 0
        values["steam_data"] = merge_value(partial.steam_data, stored("steam_data"))
        return values

    def apply(self, partial: PartialGame, force: bool = False, backfill_images: Optional[bool] = None) -> EnrichResult:
        """Upsert ``partial`` and everything hanging off the game. Commits on success, rolls back on error."""
        now = now_utc()
        try:
            game, created = self._find_or_create(partial)
            values = self.merge(None if created else game, partial)
            new_hash = data_hash(partial)
            changed = created or force or game.data_hash != new_hash

            if changed:
                for field, value in values.items():
                    setattr(game, field, value)
                game.raw_igdb_json = partial.raw
                game.data_hash = new_hash
            game.last_igdb_sync_at = now
            db.session.flush()

            if changed:
                self.reconciler.reconcile(game, partial)
                self.sync_external_sources(game, partial)

            self.priority.recompute(game, now)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        if changed:
            logger.info("Updated game data", igdb_id=game.igdb_id, name=game.name, created=created)
            if backfill_images is None:
                backfill_images = self.fetch_images
            if backfill_images and self.images.missing_types(game):
                self.backfill_images(game)
        else:
            logger.info("No changes detected", igdb_id=game.igdb_id, name=game.name)

        return EnrichResult(game=game, created=created, changed=changed)

    def backfill_images(self, game: Game):
        """Art is best effort: the game is already committed, so errors here are logged only"""
        igdb_id = game.igdb_id
        try:
            if self.images.backfill(game):
                self.priority.recompute(game)
                db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error("Image backfill failed", igdb_id=igdb_id, source=SOURCE_STEAMGRIDDB, error=str(e))

    def sync_external_sources(self, game: Game, partial: PartialGame):
        """Create or update links for the configured sources only"""
        for source in partial.external_sources:
            if source.source_id not in self.active_sources:
                continue
            name = source.source_name if source.source_name != "Unknown" else None
            definition = ExternalSourcesRepository.get_or_create_definition(source.source_id, name)
            if definition is None:
                continue
            ExternalSourcesRepository.upsert_link(game, definition, source.external_uid, source.external_url)

    def sync_source_definitions(self):
        """Refresh ExternalGameSource rows from IGDB. Returns (created, updated)."""
        created = updated = 0
        try:
            for source in self.igdb.fetch_external_game_sources():
                if source.get("id") is None or not source.get("name"):
                    continue
                if ExternalSourcesRepository.upsert_definition(int(source["id"]), source["name"]):
                    created += 1
                else:
                    updated += 1
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        logger.info("Synced external game sources", created=created, updated=updated)
        return created, updated
