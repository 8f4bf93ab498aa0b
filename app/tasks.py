import sys
import os

# Add app directory to path BEFORE any imports
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

import structlog

from celery_app import celery
from db import db

logger = structlog.get_logger("main")


# Lazy initialization of Flask app to avoid errors on import
# The app context will only be created when the first task runs
_flask_app = None


def get_flask_app():
    """Get or create the Flask app lazily"""
    global _flask_app
    if _flask_app is None:
        logger.info("Creating Flask app context (lazy initialization)...")
        from app import create_app

        _flask_app = create_app()
    return _flask_app


def get_services():
    return get_flask_app().extensions["playdex"]


@celery.task(name="tasks.refresh_stale_games")
def refresh_stale_games(min_days=90, batch_size=50, force=False):
    with get_flask_app().app_context():
        result = get_services().scheduler.refresh_stale(min_days=min_days, batch_size=batch_size, force=force)
        return result.to_dict()


@celery.task(name="tasks.refresh_popular_games")
def refresh_popular_games(limit=100, min_views=5, force=False):
    with get_flask_app().app_context():
        result = get_services().scheduler.refresh_popular(limit=limit, min_views=min_views, force=force)
        return result.to_dict()


@celery.task(name="tasks.refresh_recent_games")
def refresh_recent_games(days=60, limit=100, force=False):
    with get_flask_app().app_context():
        result = get_services().scheduler.refresh_recent(days=days, limit=limit, force=force)
        return result.to_dict()


@celery.task(name="tasks.refresh_game_data")
def refresh_game_data(igdb_id, force=False):
    """Refresh one game in the background"""
    with get_flask_app().app_context():
        result = get_services().enricher.enrich(igdb_id, force=force)
        return {"igdb_id": igdb_id, "created": result.created, "changed": result.changed}


@celery.task(name="tasks.fetch_game_images")
def fetch_game_images(game_id, types=None):
    """SteamGridDB backfill for a game looked up on demand"""
    with get_flask_app().app_context():
        from repositories.games_repository import GamesRepository

        game = GamesRepository.get_by_id(game_id)
        if game is None:
            logger.warning("fetch_game_images: game not found", game_id=game_id)
            return {}
        services = get_services()
        found = services.images.backfill(game, types=types)
        if found:
            services.priority.recompute(game)
            db.session.commit()
        return found


@celery.task(name="tasks.start_stats_sync")
def start_stats_sync(threshold=0, limit=500):
    with get_flask_app().app_context():
        return get_services().stats.start_chain(threshold=threshold, limit=limit)


@celery.task(name="tasks.sync_stats_link")
def sync_stats_link(link_id, next_link_id=None, remaining=0, threshold=0):
    """One step of the stats chain: sync ``link_id``, then queue ``next_link_id``"""
    with get_flask_app().app_context():
        get_services().stats.run_chain_step(link_id, next_link_id, remaining, threshold)
