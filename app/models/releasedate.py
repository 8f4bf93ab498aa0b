"""
Model: GameReleaseDate
Per-platform release dates mirrored from IGDB. Rows flagged is_manual are
curated locally and never touched by a sync.
"""

from db import db, now_utc


class GameReleaseDate(db.Model):
    __tablename__ = "game_release_dates"

    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    platform_id = db.Column(db.Integer, db.ForeignKey("platforms.id", ondelete="SET NULL"))
    igdb_release_date_id = db.Column(db.Integer, index=True)

    date = db.Column(db.DateTime(timezone=True))
    year = db.Column(db.Integer)
    month = db.Column(db.Integer)
    day = db.Column(db.Integer)
    region = db.Column(db.Integer)
    human_readable = db.Column(db.String(64))
    status = db.Column(db.Integer)  # IGDB release date status id
    is_manual = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)
    updated_at = db.Column(db.DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    platform = db.relationship("Platform")

    __table_args__ = (db.Index("idx_release_date_game_platform", "game_id", "platform_id"),)
