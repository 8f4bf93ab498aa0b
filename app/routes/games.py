"""
Games Routes - on-demand catalog lookup and service health
"""

import os
import socket

from flask import Blueprint, current_app
from sqlalchemy import text
import redis
import structlog

from api_responses import ErrorCode, error_response, success_response
from constants import BUILD_VERSION
from db import db
from utils import now_utc

logger = structlog.get_logger("main")

games_bp = Blueprint("games", __name__, url_prefix="/api")


def get_services():
    return current_app.extensions["playdex"]


def queue_image_backfill(game):
    """Hand missing art to the worker, the lookup itself never waits on SteamGridDB"""
    services = get_services()
    if not current_app.config.get("ASYNC_IMAGE_FETCH", True) or not services.images.missing_types(game):
        return False
    try:
        from tasks import fetch_game_images

        fetch_game_images.delay(game.id)
        return True
    except Exception as e:
        logger.warning("Could not queue image backfill", igdb_id=game.igdb_id, error=str(e))
        return False


@games_bp.route("/games/<int:igdb_id>", methods=["GET"])
def get_game(igdb_id):
    """
    Catalog record for ``igdb_id``, fetched from IGDB when not stored yet.
    Every lookup counts as a view.
    """
    services = get_services()
    game = services.enricher.fetch_if_missing(igdb_id, backfill_images=False)
    services.priority.mark_as_viewed(game)
    queue_image_backfill(game)

    data = game.to_summary()
    data["developers"] = [c.name for c in game.get_developers()]
    data["publishers"] = [c.name for c in game.get_publishers()]
    if game.steam_stats is not None:
        data["steam_stats"] = {
            "owners": game.steam_stats.owners_range,
            "price": game.steam_stats.price_formatted,
            "average_playtime_hours": game.steam_stats.average_playtime_hours,
        }
    return success_response(data)


@games_bp.route("/system/health", methods=["GET"])
def health_check_api():
    """Health check endpoint for monitoring"""
    overall_status = "healthy"
    checks = {
        "timestamp": now_utc().isoformat(),
        "version": BUILD_VERSION,
        "hostname": socket.gethostname(),
        "database": "unknown",
        "redis": "unknown",
    }

    # Check Database connection
    try:
        db.session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {str(e)}"
        overall_status = "unhealthy"

    # Check Redis connection (broker for the worker)
    try:
        redis_url = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
        r = redis.from_url(redis_url, socket_connect_timeout=1)
        r.ping()
        checks["redis"] = "ok"
    except Exception:
        checks["redis"] = "not_configured"

    checks["status"] = overall_status
    if overall_status != "healthy":
        return error_response(ErrorCode.SERVICE_UNAVAILABLE, message="Service unhealthy", details=checks,
                              status_code=503)
    return success_response(checks)
