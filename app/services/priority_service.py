"""
Update priority scoring and view tracking.

The score (0-100, plus a manual boost) ranks games for the refresh batches and
for the stats sync. Only the relative order matters to callers.
"""
import math
from typing import Dict, Optional

import structlog

from db import db
from utils import days_between, ensure_utc, now_utc

logger = structlog.get_logger("main")

DEFAULT_WEIGHTS = {
    # views: log2(views + 1) * per_view, capped
    "views_per_log": 5,
    "views_cap": 40,
    # release recency: (max days from release, points), first match wins
    "release_recency": [(30, 30), (90, 20), (180, 10)],
    # sync age: (more than N days, points), first match wins
    "sync_age": [(90, 20), (60, 15), (30, 10), (14, 5)],
    "never_synced": 20,
    "missing_data": 10,
    "max_score": 100,
}


class PriorityScorer:
    """Pluggable scoring function: ``PriorityScorer(weights).score(game)``"""

    def __init__(self, weights: Optional[Dict] = None):
        self.weights = dict(DEFAULT_WEIGHTS)
        if weights:
            self.weights.update(weights)

    def score(self, game, now=None) -> int:
        now = now or now_utc()
        w = self.weights
        score = 0.0

        views = game.view_count or 0
        if views > 0:
            score += min(math.log2(views + 1) * w["views_per_log"], w["views_cap"])

        if game.first_release_date:
            # Upcoming releases count as recent too
            days = abs(days_between(ensure_utc(game.first_release_date), now))
            for max_days, points in w["release_recency"]:
                if days <= max_days:
                    score += points
                    break

        if game.last_igdb_sync_at:
            age = days_between(ensure_utc(game.last_igdb_sync_at), now)
            for min_days, points in w["sync_age"]:
                if age > min_days:
                    score += points
                    break
        else:
            score += w["never_synced"]

        if not game.cover_image_id or not game.summary or not game.steam_data:
            score += w["missing_data"]

        return min(int(round(score)), w["max_score"]) + (game.priority_boost or 0)


class PriorityService:
    """Writes ``update_priority`` and the view counters on Game"""

    def __init__(self, scorer: Optional[PriorityScorer] = None):
        self.scorer = scorer or PriorityScorer()

    def recompute(self, game, now=None) -> int:
        game.update_priority = self.scorer.score(game, now)
        return game.update_priority

    def mark_as_viewed(self, game, now=None):
        """Count a view and refresh the score"""
        now = now or now_utc()
        game.view_count = (game.view_count or 0) + 1
        game.last_viewed_at = now
        self.recompute(game, now)
        db.session.commit()
        logger.debug("Recorded view", igdb_id=game.igdb_id, view_count=game.view_count,
                     update_priority=game.update_priority)
        return game
