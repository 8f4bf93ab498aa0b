"""
Reconciles the nested reference data of a game (platforms, genres, modes,
companies, engines, perspectives) and its per-platform release dates.

Reference rows are found or created by IGDB id with INSERT .. ON CONFLICT DO
NOTHING against the unique index, so concurrent enrichments meeting the same
id end up sharing one row. Association rows are replaced per kind inside a
SAVEPOINT: after a pass the game's set for that kind equals the payload set.
"""
from typing import Dict, List, Optional

import structlog

from db import db, upsert_insert
from models import (
    Company,
    GameEngine,
    GameMode,
    GameReleaseDate,
    Genre,
    Platform,
    PlayerPerspective,
    game_company,
    game_game_engine,
    game_game_mode,
    game_genre,
    game_platform,
    game_player_perspective,
)
from utils import ensure_utc

logger = structlog.get_logger("main")

# kind -> (model, association table, association column, placeholder name)
REFERENCE_KINDS = {
    "platforms": (Platform, game_platform, "platform_id", "Unknown Platform"),
    "genres": (Genre, game_genre, "genre_id", "Unknown Genre"),
    "game_modes": (GameMode, game_game_mode, "game_mode_id", "Unknown Mode"),
    "game_engines": (GameEngine, game_game_engine, "game_engine_id", "Unknown Engine"),
    "player_perspectives": (PlayerPerspective, game_player_perspective, "player_perspective_id", "Unknown Perspective"),
}

COMPANY_PLACEHOLDER = "Unknown Company"


class RelationReconciler:

    def find_or_create(self, model, igdb_id: int, name: Optional[str], placeholder: str):
        """Row for ``igdb_id``, inserting it when missing. Existing names are kept unless still a placeholder."""
        stmt = (
            upsert_insert(model)
            .values(igdb_id=igdb_id, name=name or placeholder)
            .on_conflict_do_nothing(index_elements=["igdb_id"])
        )
        db.session.execute(stmt)
        row = model.query.filter(model.igdb_id == igdb_id).one()
        if name and row.name == placeholder:
            row.name = name
        return row

    def _resolve(self, model, refs: List[Dict], placeholder: str) -> List[int]:
        ids = []
        for ref in refs:
            row = self.find_or_create(model, ref["igdb_id"], ref.get("name"), placeholder)
            if row.id not in ids:
                ids.append(row.id)
        return ids

    def replace_associations(self, game, kind: str, refs: Optional[List[Dict]]):
        """
        Make the game's ``kind`` associations exactly ``refs``.
        ``None`` (IGDB sent nothing for this kind) leaves the current set alone.
        """
        if refs is None:
            return
        model, table, column, placeholder = REFERENCE_KINDS[kind]
        ids = self._resolve(model, refs, placeholder)

        with db.session.begin_nested():
            db.session.execute(table.delete().where(table.c.game_id == game.id))
            if ids:
                db.session.execute(table.insert(), [{"game_id": game.id, column: ref_id} for ref_id in ids])
        db.session.expire(game, [kind])

    def replace_companies(self, game, companies: Optional[List[Dict]]):
        if companies is None:
            return
        rows = []
        seen = set()
        for company in companies:
            row = self.find_or_create(Company, company["igdb_id"], company.get("name"), COMPANY_PLACEHOLDER)
            if row.id in seen:
                continue
            seen.add(row.id)
            rows.append({
                "game_id": game.id,
                "company_id": row.id,
                "is_developer": bool(company.get("is_developer")),
                "is_publisher": bool(company.get("is_publisher")),
            })

        with db.session.begin_nested():
            db.session.execute(game_company.delete().where(game_company.c.game_id == game.id))
            if rows:
                db.session.execute(game_company.insert(), rows)
        db.session.expire(game, ["companies"])

    def sync_release_dates(self, game, release_dates: Optional[List[Dict]]):
        """
        Mirror IGDB release dates. Existing rows are matched by IGDB id, else by
        (platform, date, region). Manual rows are never touched; IGDB rows missing
        from the payload are deleted.
        """
        existing = GameReleaseDate.query.filter_by(game_id=game.id, is_manual=False).all()
        kept = set()

        platform_igdb_ids = {d["platform_igdb_id"] for d in release_dates or [] if d.get("platform_igdb_id")}
        platforms = {}
        if platform_igdb_ids:
            platforms = {
                p.igdb_id: p.id for p in Platform.query.filter(Platform.igdb_id.in_(platform_igdb_ids)).all()
            }

        for item in release_dates or []:
            platform_id = None
            if item.get("platform_igdb_id") is not None:
                platform_id = platforms.get(item["platform_igdb_id"])
                if platform_id is None:
                    logger.warning(
                        "Skipping release date, platform not found",
                        igdb_id=game.igdb_id,
                        igdb_platform_id=item["platform_igdb_id"],
                        igdb_release_date_id=item.get("igdb_release_date_id"),
                    )
                    continue

            row = _match_release_date([r for r in existing if id(r) not in kept], item, platform_id)
            if row is None:
                row = GameReleaseDate(game_id=game.id, is_manual=False)
                db.session.add(row)
                existing.append(row)

            row.platform_id = platform_id
            row.igdb_release_date_id = item.get("igdb_release_date_id")
            row.date = item.get("date")
            row.year = item.get("year")
            row.month = item.get("month")
            row.day = item.get("day")
            row.region = item.get("region")
            row.human_readable = item.get("human_readable")
            row.status = item.get("status")
            kept.add(id(row))

        for row in existing:
            if id(row) not in kept:
                db.session.delete(row)
        db.session.flush()
        db.session.expire(game, ["release_dates"])

    def reconcile(self, game, partial):
        """Apply every relation of a parsed payload to ``game`` (platforms first, release dates need them)"""
        for kind in REFERENCE_KINDS:
            self.replace_associations(game, kind, partial.relations.get(kind))
        self.replace_companies(game, partial.companies)
        self.sync_release_dates(game, partial.release_dates)


def _same_day(a, b):
    if a is None or b is None:
        return a is None and b is None
    return ensure_utc(a).date() == ensure_utc(b).date()


def _match_release_date(existing, item, platform_id):
    igdb_id = item.get("igdb_release_date_id")
    if igdb_id:
        for row in existing:
            if row.igdb_release_date_id == igdb_id:
                return row
    for row in existing:
        if row.platform_id == platform_id and row.region == item.get("region") and _same_day(row.date, item.get("date")):
            return row
    return None
