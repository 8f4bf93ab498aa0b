from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from flask import Response, request
import time
from functools import wraps

# Upstream Metrics
upstream_requests_total = Counter(
    "playdex_upstream_requests_total", "Requests sent to external sources", ["source", "status"]
)

upstream_request_duration_seconds = Histogram(
    "playdex_upstream_request_duration_seconds", "External source request duration", ["source"]
)

# Sync Metrics
sync_items_total = Counter("playdex_sync_items_total", "Games processed by refresh batches", ["batch", "outcome"])

sync_batch_duration_seconds = Histogram("playdex_sync_batch_duration_seconds", "Refresh batch duration", ["batch"])

stats_link_transitions_total = Counter(
    "playdex_stats_link_transitions_total", "External source link state transitions", ["status"]
)

images_resolved_total = Counter("playdex_images_resolved_total", "Image backfill attempts", ["image_type", "outcome"])

# Catalog Metrics
catalog_games_total = Gauge("playdex_catalog_games_total", "Total number of games")
catalog_games_never_synced = Gauge("playdex_catalog_games_never_synced", "Games without a successful sync")
catalog_games_without_cover = Gauge("playdex_catalog_games_without_cover", "Games without cover art")
external_links_by_status = Gauge("playdex_external_links", "External source links by sync status", ["status"])

# API Metrics
api_request_duration_seconds = Histogram(
    "playdex_api_request_duration_seconds", "API request duration", ["endpoint", "method"]
)

api_requests_total = Counter("playdex_api_requests_total", "Total API requests", ["endpoint", "method", "status_code"])


def init_metrics(app):
    @app.route("/api/metrics")
    def metrics():
        update_catalog_metrics()
        return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)

    @app.before_request
    def before_request():
        request.start_time = time.time()

    @app.after_request
    def after_request(response):
        duration = time.time() - getattr(request, "start_time", time.time())
        api_request_duration_seconds.labels(endpoint=request.endpoint or "unknown", method=request.method).observe(
            duration
        )
        api_requests_total.labels(
            endpoint=request.endpoint or "unknown", method=request.method, status_code=response.status_code
        ).inc()
        return response

    app.logger.info("Prometheus metrics initialized at /api/metrics")


def update_catalog_metrics():
    """Refresh catalog gauges from the database."""
    from db import db
    from models import Game, GameExternalSource

    catalog_games_total.set(Game.query.count())
    catalog_games_never_synced.set(Game.query.filter(Game.last_igdb_sync_at.is_(None)).count())
    catalog_games_without_cover.set(Game.query.filter(Game.cover_image_id.is_(None)).count())

    rows = (
        db.session.query(GameExternalSource.sync_status, db.func.count(GameExternalSource.id))
        .group_by(GameExternalSource.sync_status)
        .all()
    )
    for status, count in rows:
        external_links_by_status.labels(status=status).set(count)


def track_upstream(source):
    """Time a client call and count it by outcome ('ok' or the exception class name)."""

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
                upstream_requests_total.labels(source=source, status="ok").inc()
                return result
            except Exception as e:
                upstream_requests_total.labels(source=source, status=type(e).__name__).inc()
                raise
            finally:
                upstream_request_duration_seconds.labels(source=source).observe(time.time() - start_time)

        return wrapper

    return decorator
