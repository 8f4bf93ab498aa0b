"""
Model: reference entities (platform, genre, game mode, company, engine, perspective)

Each table is keyed by the IGDB id with a UNIQUE index. That index is the only
deduplication boundary: rows are created with INSERT .. ON CONFLICT DO NOTHING
so two enrichments discovering the same id at once still end up with one row.
"""

from db import db, now_utc


class Platform(db.Model):
    __tablename__ = "platforms"

    id = db.Column(db.Integer, primary_key=True)
    igdb_id = db.Column(db.Integer, unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)


class Genre(db.Model):
    __tablename__ = "genres"

    id = db.Column(db.Integer, primary_key=True)
    igdb_id = db.Column(db.Integer, unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)


class GameMode(db.Model):
    __tablename__ = "game_modes"

    id = db.Column(db.Integer, primary_key=True)
    igdb_id = db.Column(db.Integer, unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)


class Company(db.Model):
    __tablename__ = "companies"

    id = db.Column(db.Integer, primary_key=True)
    igdb_id = db.Column(db.Integer, unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)


class GameEngine(db.Model):
    __tablename__ = "game_engines"

    id = db.Column(db.Integer, primary_key=True)
    igdb_id = db.Column(db.Integer, unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)


class PlayerPerspective(db.Model):
    __tablename__ = "player_perspectives"

    id = db.Column(db.Integer, primary_key=True)
    igdb_id = db.Column(db.Integer, unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)


def _association(name, column, target):
    return db.Table(
        name,
        db.Column("game_id", db.Integer, db.ForeignKey("games.id", ondelete="CASCADE"), primary_key=True),
        db.Column(column, db.Integer, db.ForeignKey(f"{target}.id", ondelete="CASCADE"), primary_key=True),
    )


game_platform = _association("game_platform", "platform_id", "platforms")
game_genre = _association("game_genre", "genre_id", "genres")
game_game_mode = _association("game_game_mode", "game_mode_id", "game_modes")
game_game_engine = _association("game_game_engine", "game_engine_id", "game_engines")
game_player_perspective = _association("game_player_perspective", "player_perspective_id", "player_perspectives")

game_company = db.Table(
    "game_company",
    db.Column("game_id", db.Integer, db.ForeignKey("games.id", ondelete="CASCADE"), primary_key=True),
    db.Column("company_id", db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), primary_key=True),
    db.Column("is_developer", db.Boolean, nullable=False, default=False),
    db.Column("is_publisher", db.Boolean, nullable=False, default=False),
)
