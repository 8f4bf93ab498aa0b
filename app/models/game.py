"""
Model: Game
Canonical catalog record, keyed by the immutable IGDB id.
"""

import os

from db import db, now_utc
from constants import IGDB_IMAGE_URL
from models.reference import (
    Company,
    game_company,
    game_game_engine,
    game_game_mode,
    game_genre,
    game_platform,
    game_player_perspective,
)


class Game(db.Model):
    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)
    igdb_id = db.Column(db.Integer, unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), index=True)
    summary = db.Column(db.Text)
    first_release_date = db.Column(db.DateTime(timezone=True), index=True)  # NULL = TBA
    game_type = db.Column(db.Integer, default=0)

    # Image ids: IGDB image ids, Steam CDN urls, or local SteamGridDB filenames
    cover_image_id = db.Column(db.String(512))
    hero_image_id = db.Column(db.String(512))
    logo_image_id = db.Column(db.String(512))

    screenshots = db.Column(db.JSON)  # [{"image_id": "..."}]
    trailers = db.Column(db.JSON)  # [{"video_id": "..."}]
    similar_games = db.Column(db.JSON)
    steam_data = db.Column(db.JSON)  # storefront payload
    raw_igdb_json = db.Column(db.JSON)
    data_hash = db.Column(db.String(32))  # md5 of the last upstream payload

    # === STALENESS TRACKING ===
    view_count = db.Column(db.Integer, nullable=False, default=0, index=True)
    last_viewed_at = db.Column(db.DateTime(timezone=True))
    update_priority = db.Column(db.Integer, nullable=False, default=0, index=True)
    priority_boost = db.Column(db.Integer, nullable=False, default=0)  # manual
    last_igdb_sync_at = db.Column(db.DateTime(timezone=True), index=True)

    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)
    updated_at = db.Column(db.DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    platforms = db.relationship("Platform", secondary=game_platform, lazy="selectin")
    genres = db.relationship("Genre", secondary=game_genre, lazy="selectin")
    game_modes = db.relationship("GameMode", secondary=game_game_mode, lazy="selectin")
    game_engines = db.relationship("GameEngine", secondary=game_game_engine, lazy="selectin")
    player_perspectives = db.relationship("PlayerPerspective", secondary=game_player_perspective, lazy="selectin")
    companies = db.relationship("Company", secondary=game_company, lazy="selectin", viewonly=True)

    release_dates = db.relationship(
        "GameReleaseDate", backref="game", lazy="selectin", cascade="all, delete-orphan", passive_deletes=True
    )
    external_sources = db.relationship(
        "GameExternalSource", backref="game", lazy="selectin", cascade="all, delete-orphan", passive_deletes=True
    )
    steam_stats = db.relationship(
        "SteamGameData", backref="game", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self):
        return f"<Game {self.igdb_id} {self.name!r}>"

    @staticmethod
    def image_url(image_id, size="cover_big"):
        """IGDB ids have no extension, local SteamGridDB files do, Steam images are full urls"""
        if not image_id:
            return None
        if image_id.startswith("http://") or image_id.startswith("https://"):
            return image_id
        if os.path.splitext(image_id)[1]:
            return f"/storage/covers/{image_id}"
        return IGDB_IMAGE_URL.format(size=size, image_id=image_id)

    @property
    def cover_url(self):
        return self.image_url(self.cover_image_id)

    @property
    def hero_url(self):
        return self.image_url(self.hero_image_id, size="1080p")

    @property
    def logo_url(self):
        return self.image_url(self.logo_image_id, size="logo_med")

    def _companies_with_flag(self, flag):
        return (
            Company.query.join(game_company, game_company.c.company_id == Company.id)
            .filter(game_company.c.game_id == self.id, game_company.c[flag].is_(True))
            .order_by(Company.name)
            .all()
        )

    def get_developers(self):
        return self._companies_with_flag("is_developer")

    def get_publishers(self):
        return self._companies_with_flag("is_publisher")

    def to_summary(self):
        return {
            "igdb_id": self.igdb_id,
            "name": self.name,
            "slug": self.slug,
            "summary": self.summary,
            "first_release_date": self.first_release_date.isoformat() if self.first_release_date else None,
            "cover_url": self.cover_url,
            "hero_url": self.hero_url,
            "logo_url": self.logo_url,
            "platforms": [p.name for p in self.platforms],
            "genres": [g.name for g in self.genres],
            "view_count": self.view_count,
            "update_priority": self.update_priority,
            "last_igdb_sync_at": self.last_igdb_sync_at.isoformat() if self.last_igdb_sync_at else None,
        }
