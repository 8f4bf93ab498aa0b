"""
Model: ExternalGameSource
Definitions of the stores/services IGDB cross-references (Steam, GOG, ...).
"""

from db import db, now_utc
from constants import EXTERNAL_SOURCE_STORE_URLS


class ExternalGameSource(db.Model):
    __tablename__ = "external_game_sources"

    id = db.Column(db.Integer, primary_key=True)
    igdb_id = db.Column(db.Integer, unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255))
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)
    updated_at = db.Column(db.DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    @property
    def store_url(self):
        return EXTERNAL_SOURCE_STORE_URLS.get(self.igdb_id)
