"""
Playdex - Game Catalog Synchronization Service
Application Factory and Initialization
"""
import os
import sys
import logging

import flask.cli
flask.cli.show_server_banner = lambda *args: None

# Core Flask imports
from flask import Flask
import structlog

# Local imports
from constants import PLAYDEX_DB
from settings import load_settings, verify_settings
from db import init_db
from exceptions import register_exception_handlers
from metrics import init_metrics
from utils import ColoredFormatter, FilterRemoveDateFromWerkzeugLogs

# Routes and services
from routes.games import games_bp
from services.factory import build_services
from cli import register_commands

# Logging configuration
formatter = ColoredFormatter(
    '[%(asctime)s.%(msecs)03d] %(levelname)s (%(module)s) %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
handler = logging.StreamHandler(sys.stdout)
handler.setFormatter(formatter)

logging.basicConfig(
    level=logging.INFO,
    handlers=[handler]
)

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer() if os.environ.get('LOG_FORMAT') == 'json' else structlog.dev.ConsoleRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger('main')

# Apply filter to hide date from http access logs
logging.getLogger('werkzeug').addFilter(FilterRemoveDateFromWerkzeugLogs())


def dispatch_stats_step(*args):
    """Queue one step of the stats sync chain on the worker"""
    from tasks import sync_stats_link
    sync_stats_link.apply_async(args=list(args), queue='low')


def create_app(test_config=None, services=None):
    """Application factory"""
    app = Flask(__name__)
    app.config["SQLALCHEMY_DATABASE_URI"] = PLAYDEX_DB
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['ASYNC_IMAGE_FETCH'] = True
    if test_config:
        app.config.update(test_config)

    # Register exception handlers
    register_exception_handlers(app)

    # Register blueprints
    app.register_blueprint(games_bp)

    # Initialize metrics
    init_metrics(app)

    # Initialize database
    init_db(app)

    # CLI commands
    register_commands(app)

    # One set of clients per process, shared by requests, commands and tasks
    if services is None:
        settings = app.config.get('PLAYDEX_SETTINGS') or load_settings()
        valid, errors = verify_settings(settings)
        if not valid:
            for error in errors:
                logger.warning('Settings problem', path=error['path'], error=error['error'])
        services = build_services(settings, dispatch_stats_step=dispatch_stats_step)
    app.extensions['playdex'] = services

    logger.info('Playdex initialized', database=app.config["SQLALCHEMY_DATABASE_URI"].split('://')[0])
    return app


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=int(os.environ.get('PORT', 8465)))
