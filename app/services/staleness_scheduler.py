"""
Batch refreshes of catalog games.

Three selections share one loop: stale games (long since last sync), popular
games (many views) and recently released games. Candidates are processed one
at a time with a fixed delay in between; a failing game is logged and counted
and never stops the batch.

The import batch is different: it pulls every game IGDB lists for a release
window and stores them through the enricher in one go.
"""
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import structlog

from constants import BATCH_IMPORT, BATCH_POPULAR, BATCH_RECENT, BATCH_STALE, DEFAULT_SETTINGS, SOURCE_IGDB
from db import db
from exceptions import ValidationException
from metrics import sync_batch_duration_seconds, sync_items_total
from repositories.games_repository import GamesRepository
from repositories.syncrunlog_repository import SyncRunLogRepository
from utils import ensure_utc, now_utc

logger = structlog.get_logger("main")


@dataclass
class BatchResult:
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    candidates: int = 0
    remaining: int = 0

    def to_dict(self):
        return asdict(self)


def _require_positive(**values):
    for name, value in values.items():
        if value is None or int(value) < 1:
            raise ValidationException(f"{name} must be a positive integer, got {value!r}")


def parse_start_date(value):
    """YYYY-MM-DD to midnight UTC, today when empty"""
    if not value:
        today = now_utc().date()
        return datetime(today.year, today.month, today.day, tzinfo=timezone.utc)
    try:
        return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except (TypeError, ValueError):
        raise ValidationException(f"Invalid start date {value!r}, expected YYYY-MM-DD")


class StalenessScheduler:
    def __init__(self, enricher, sync_settings: Optional[Dict] = None, sleep=time.sleep):
        self.enricher = enricher
        self.settings = dict(DEFAULT_SETTINGS["sync"])
        self.settings.update(sync_settings or {})
        self.sleep = sleep

    def refresh_stale(self, min_days: int = 90, batch_size: int = 50, force: bool = False) -> BatchResult:
        """Games never synced or not synced for ``min_days`` days"""
        _require_positive(min_days=min_days, batch_size=batch_size)
        logger.info("Updating stale games", min_days=min_days, batch_size=batch_size, force=force)
        query = GamesRepository.stale_candidates(min_days, force=force)
        return self._run(BATCH_STALE, query, batch_size, min_days, force, self.settings["stale_delay_seconds"])

    def refresh_popular(self, limit: int = 100, min_views: int = 5, force: bool = False) -> BatchResult:
        """Games with at least ``min_views`` views not synced in the popular window"""
        _require_positive(limit=limit, min_views=min_views)
        min_days = self.settings["popular_min_days"]
        logger.info("Updating popular games", limit=limit, min_views=min_views, force=force)
        query = GamesRepository.popular_candidates(min_views, min_days, force=force)
        return self._run(BATCH_POPULAR, query, limit, min_days, force, self.settings["popular_delay_seconds"])

    def refresh_recent(self, days: int = 60, limit: int = 100, force: bool = False) -> BatchResult:
        """Games released in the last ``days`` days not synced in the recent window"""
        _require_positive(days=days, limit=limit)
        min_days = self.settings["recent_min_days"]
        logger.info("Updating recently released games", days=days, limit=limit, force=force)
        query = GamesRepository.recent_candidates(days, min_days, force=force)
        return self._run(BATCH_RECENT, query, limit, min_days, force, self.settings["recent_delay_seconds"])

    def import_upcoming(self, start_date=None, days: int = 14, platform_ids=None, limit: int = 100) -> BatchResult:
        """
        Store every game released in [start_date, start_date + days) on the given
        platforms. ``start_date`` is a YYYY-MM-DD string and defaults to today (UTC).
        """
        _require_positive(days=days, limit=limit)
        start = parse_start_date(start_date)
        end = start + timedelta(days=days)
        logger.info("Importing games by release window", start=start.date().isoformat(), end=end.date().isoformat(),
                    platforms=platform_ids or "default")

        result = BatchResult()
        run_log = SyncRunLogRepository.start(BATCH_IMPORT)
        try:
            with sync_batch_duration_seconds.labels(batch=BATCH_IMPORT).time():
                payloads = self.enricher.igdb.fetch_games_released_between(
                    int(start.timestamp()), int(end.timestamp()), platform_ids=platform_ids, limit=limit
                )
                result.candidates = len(payloads)
                results = self.enricher.enrich_payloads(payloads)
        except Exception as e:
            db.session.rollback()
            logger.error("Import aborted", batch=BATCH_IMPORT, error=str(e))
            SyncRunLogRepository.finish(run_log, result, error=e)
            raise

        result.updated = sum(1 for r in results if r.changed)
        result.skipped = len(results) - result.updated
        result.failed = result.candidates - len(results)
        sync_items_total.labels(batch=BATCH_IMPORT, outcome="updated").inc(result.updated)
        sync_items_total.labels(batch=BATCH_IMPORT, outcome="skipped").inc(result.skipped)
        sync_items_total.labels(batch=BATCH_IMPORT, outcome="failed").inc(result.failed)
        SyncRunLogRepository.finish(run_log, result)
        logger.info("Import complete", batch=BATCH_IMPORT, **result.to_dict())
        return result

    @staticmethod
    def is_fresh(game, min_days: int, now=None) -> bool:
        """Synced within the last ``min_days`` days"""
        last_sync = ensure_utc(game.last_igdb_sync_at)
        if last_sync is None:
            return False
        return last_sync > (now or now_utc()) - timedelta(days=min_days)

    def _run(self, batch, query, limit, min_days, force, delay) -> BatchResult:
        result = BatchResult()
        run_log = SyncRunLogRepository.start(batch, force=force)

        try:
            with sync_batch_duration_seconds.labels(batch=batch).time():
                total = query.count()
                games = query.limit(limit).all()
                result.candidates = len(games)
                result.remaining = max(0, total - limit)

                if not games:
                    logger.info("No candidates found", batch=batch)

                for game in games:
                    self._process(batch, game, min_days, force, delay, result)
        except Exception as e:
            db.session.rollback()
            logger.error("Batch aborted", batch=batch, error=str(e))
            SyncRunLogRepository.finish(run_log, result, error=e)
            raise

        SyncRunLogRepository.finish(run_log, result)
        logger.info("Batch update complete", batch=batch, **result.to_dict())
        return result

    def _process(self, batch, game, min_days, force, delay, result):
        igdb_id = game.igdb_id
        # Another batch or an on-demand lookup may have refreshed it meanwhile
        db.session.refresh(game)
        if not force and self.is_fresh(game, min_days):
            result.skipped += 1
            sync_items_total.labels(batch=batch, outcome="skipped").inc()
            return

        try:
            self.enricher.enrich(igdb_id, force=force)
            result.updated += 1
            sync_items_total.labels(batch=batch, outcome="updated").inc()
        except Exception as e:
            db.session.rollback()
            result.failed += 1
            sync_items_total.labels(batch=batch, outcome="failed").inc()
            logger.error(
                "Failed to update game",
                batch=batch,
                igdb_id=igdb_id,
                source=getattr(e, "source", None) or SOURCE_IGDB,
                error=str(e),
            )

        if delay:
            self.sleep(delay)
