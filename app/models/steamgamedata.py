"""
Model: SteamGameData
Engagement statistics from SteamSpy, one row per game.
"""

from db import db, now_utc


class SteamGameData(db.Model):
    __tablename__ = "steam_game_data"

    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id", ondelete="CASCADE"), unique=True, nullable=False)
    steam_app_id = db.Column(db.String(32), nullable=False, index=True)

    owners = db.Column(db.String(64))  # "1,000,000 .. 2,000,000"
    players_forever = db.Column(db.Integer)
    players_2weeks = db.Column(db.Integer)
    average_forever = db.Column(db.Integer)  # minutes
    average_2weeks = db.Column(db.Integer)
    median_forever = db.Column(db.Integer)
    median_2weeks = db.Column(db.Integer)
    ccu = db.Column(db.Integer)
    price = db.Column(db.Integer)  # cents
    score_rank = db.Column(db.Integer)
    genre = db.Column(db.String(255))
    tags = db.Column(db.JSON)

    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)
    updated_at = db.Column(db.DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    @property
    def price_formatted(self):
        if self.price is None:
            return None
        if self.price == 0:
            return "Free"
        return f"${self.price / 100:,.2f}"

    @property
    def owners_range(self):
        if not self.owners:
            return None
        parts = [p.strip() for p in self.owners.split("..")]
        if len(parts) != 2:
            return None
        try:
            return {
                "min": int(parts[0].replace(",", "")),
                "max": int(parts[1].replace(",", "")),
            }
        except ValueError:
            return None

    @property
    def average_playtime_hours(self):
        if self.average_forever is None:
            return None
        return round(self.average_forever / 60, 1)
