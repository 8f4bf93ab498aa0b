"""
Repository for Game database operations
Candidate selection for the refresh batches lives here so every batch shares
the same filters and ordering.
"""

from datetime import timedelta

from sqlalchemy import or_
from db import db
from models.game import Game
from utils import now_utc


class GamesRepository:
    """Repository for Game database operations"""

    @staticmethod
    def get_by_id(id):
        return db.session.get(Game, id)

    @staticmethod
    def get_by_igdb_id(igdb_id):
        return Game.query.filter(Game.igdb_id == igdb_id).first()

    @staticmethod
    def not_synced_since(days, now=None):
        """Filter clause: never synced, or last sync at least ``days`` ago"""
        cutoff = (now or now_utc()) - timedelta(days=days)
        return or_(Game.last_igdb_sync_at.is_(None), Game.last_igdb_sync_at <= cutoff)

    @staticmethod
    def _priority_order(query, by_views=True):
        order = [Game.update_priority.desc()]
        if by_views:
            order.append(Game.view_count.desc())
        order.append(Game.last_igdb_sync_at.asc().nulls_first())
        order.append(Game.id.asc())
        return query.order_by(*order)

    @staticmethod
    def stale_candidates(min_days, force=False, now=None):
        """Games not synced for ``min_days`` days, highest priority first"""
        query = Game.query
        if not force:
            query = query.filter(GamesRepository.not_synced_since(min_days, now))
        return GamesRepository._priority_order(query)

    @staticmethod
    def popular_candidates(min_views, min_days, force=False, now=None):
        """Games with at least ``min_views`` views, highest priority first"""
        query = Game.query.filter(Game.view_count >= min_views)
        if not force:
            query = query.filter(GamesRepository.not_synced_since(min_days, now))
        return GamesRepository._priority_order(query)

    @staticmethod
    def recent_candidates(days, min_days, force=False, now=None):
        """Games released in the last ``days`` days, highest priority first"""
        now = now or now_utc()
        query = Game.query.filter(
            Game.first_release_date.isnot(None),
            Game.first_release_date >= now - timedelta(days=days),
            Game.first_release_date <= now,
        )
        if not force:
            query = query.filter(GamesRepository.not_synced_since(min_days, now))
        return GamesRepository._priority_order(query, by_views=False)

