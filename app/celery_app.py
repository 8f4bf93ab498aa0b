from celery import Celery
from celery.schedules import crontab
import os
import logging

logger = logging.getLogger(__name__)

# Periodic batches. Celery beat runs them as a separate process, nothing is
# scheduled inside the web or worker processes.
BEAT_SCHEDULE = {
    'refresh-popular-games': {
        'task': 'tasks.refresh_popular_games',
        'schedule': crontab(minute=0, hour='*/6'),
    },
    'refresh-recent-games': {
        'task': 'tasks.refresh_recent_games',
        'schedule': crontab(minute=30, hour=3),
    },
    'refresh-stale-games': {
        'task': 'tasks.refresh_stale_games',
        'schedule': crontab(minute=0, hour=4),
    },
    'sync-stats': {
        'task': 'tasks.start_stats_sync',
        'schedule': crontab(minute=0, hour=5),
        'options': {'queue': 'low'},
    },
}


def make_celery(app_name=__name__):
    redis_url = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    celery = Celery(
        app_name,
        broker=redis_url,
        backend=redis_url,
        include=['tasks']
    )

    celery.conf.update(
        task_serializer='json',
        accept_content=['json'],
        result_serializer='json',
        timezone='UTC',
        enable_utc=True,
        task_default_queue='default',
        task_routes={
            'tasks.sync_stats_link': {'queue': 'low'},
            'tasks.start_stats_sync': {'queue': 'low'},
            'tasks.fetch_game_images': {'queue': 'low'},
        },
        beat_schedule=BEAT_SCHEDULE,
    )

    return celery


celery = make_celery('playdex')
