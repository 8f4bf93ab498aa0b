"""
Model: GameExternalSource
Link between a game and one external source, plus its sync bookkeeping.

State machine:
    pending|failed|synced --success--> synced   (retry_count reset, next_retry_at cleared)
    pending|failed|synced --failure--> failed   (retry_count + 1, next_retry_at = now + backoff)
Rate-limited failures skip one step ahead in the schedule.
A failed link is eligible again once next_retry_at has passed.
"""

from datetime import timedelta

from sqlalchemy import or_

from db import db, now_utc
from constants import (
    BACKOFF_SCHEDULE_HOURS,
    SYNC_STATUS_FAILED,
    SYNC_STATUS_PENDING,
    SYNC_STATUS_SYNCED,
)
from models.externalsource import ExternalGameSource


def backoff_hours(retry_count):
    """Hours to wait after the Nth consecutive failure: 1, 4, 24, then 168 flat"""
    if retry_count < 1:
        return 0
    index = min(retry_count, len(BACKOFF_SCHEDULE_HOURS)) - 1
    return BACKOFF_SCHEDULE_HOURS[index]


class GameExternalSource(db.Model):
    __tablename__ = "game_external_sources"

    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    external_game_source_id = db.Column(
        db.Integer, db.ForeignKey("external_game_sources.id", ondelete="CASCADE"), nullable=False
    )
    external_uid = db.Column(db.String(255))
    external_url = db.Column(db.String(1024))

    sync_status = db.Column(db.String(20), nullable=False, default=SYNC_STATUS_PENDING, index=True)
    retry_count = db.Column(db.Integer, nullable=False, default=0)
    last_attempted_at = db.Column(db.DateTime(timezone=True))
    last_synced_at = db.Column(db.DateTime(timezone=True))
    next_retry_at = db.Column(db.DateTime(timezone=True))

    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)
    updated_at = db.Column(db.DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    external_game_source = db.relationship("ExternalGameSource", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("game_id", "external_game_source_id", name="uq_game_external_source"),
    )

    def mark_as_synced(self, now=None):
        now = now or now_utc()
        self.sync_status = SYNC_STATUS_SYNCED
        self.last_synced_at = now
        self.last_attempted_at = now
        self.retry_count = 0
        self.next_retry_at = None

    def mark_as_failed(self, now=None, rate_limited=False, retry_after=None):
        """
        A rate-limited failure waits one schedule step longer than a plain one,
        and never less than the upstream Retry-After.
        """
        now = now or now_utc()
        self.retry_count = (self.retry_count or 0) + 1
        self.sync_status = SYNC_STATUS_FAILED
        self.last_attempted_at = now
        step = self.retry_count + 1 if rate_limited else self.retry_count
        delay = timedelta(hours=backoff_hours(step))
        if retry_after:
            delay = max(delay, timedelta(seconds=retry_after))
        self.next_retry_at = now + delay

    @property
    def full_url(self):
        if self.external_url:
            return self.external_url
        base_url = self.external_game_source.store_url if self.external_game_source else None
        if base_url and self.external_uid:
            return base_url + self.external_uid
        return None

    # Query helpers

    @classmethod
    def not_backing_off(cls, now=None):
        """Links whose backoff window (if any) has elapsed"""
        now = now or now_utc()
        return or_(
            cls.sync_status != SYNC_STATUS_FAILED,
            cls.next_retry_at.is_(None),
            cls.next_retry_at <= now,
        )

    @classmethod
    def for_source(cls, source_igdb_id):
        return cls.query.join(ExternalGameSource).filter(ExternalGameSource.igdb_id == source_igdb_id)
