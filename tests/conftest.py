"""
Pytest fixtures and configuration for Playdex tests
"""
import os
import sys
from datetime import timedelta

import pytest
from unittest.mock import MagicMock

# Add app directory to path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), '..', 'app'))

from exceptions import NotFoundException  # noqa: E402
from utils import now_utc  # noqa: E402


class FakeIGDBClient:
    """In-memory stand-in for IGDBClient keyed by IGDB id"""

    def __init__(self):
        self.games = {}
        self.sources = []
        self.released = []
        self.calls = []
        self.errors = {}

    def add(self, payload):
        self.games[payload['id']] = payload
        return payload

    def fetch_game(self, igdb_id):
        self.calls.append(('fetch_game', igdb_id))
        if igdb_id in self.errors:
            raise self.errors[igdb_id]
        if igdb_id not in self.games:
            raise NotFoundException(f"IGDB game {igdb_id} not found", source='igdb')
        return self.games[igdb_id]

    def fetch_games(self, igdb_ids):
        self.calls.append(('fetch_games', list(igdb_ids)))
        return [self.games[i] for i in igdb_ids if i in self.games]

    def fetch_games_released_between(self, start_ts, end_ts, platform_ids=None, limit=500, offset=0):
        self.calls.append(('fetch_games_released_between', start_ts, end_ts, platform_ids, limit))
        return self.released[:limit]

    def fetch_external_game_sources(self):
        self.calls.append(('fetch_external_game_sources',))
        return self.sources


class FakeSteamClient:
    def __init__(self):
        self.details = {}
        self.calls = []

    def get_app_details(self, app_ids):
        self.calls.append(list(app_ids))
        return {str(a): self.details[str(a)] for a in app_ids if str(a) in self.details}


class FakeSteamGridDBClient:
    def __init__(self):
        self.images = {}
        self.calls = []
        self.errors = {}

    def fetch_image(self, name, image_type='cover', steam_app_id=None, igdb_id=None):
        self.calls.append((name, image_type, steam_app_id, igdb_id))
        if image_type in self.errors:
            raise self.errors[image_type]
        return self.images.get(image_type)


class FakeSteamSpyClient:
    def __init__(self):
        self.data = {}
        self.errors = {}
        self.calls = []

    def fetch_game_details(self, app_id):
        self.calls.append(str(app_id))
        if str(app_id) in self.errors:
            raise self.errors[str(app_id)]
        return self.data[str(app_id)]


@pytest.fixture
def fake_igdb():
    return FakeIGDBClient()


@pytest.fixture
def fake_steam():
    return FakeSteamClient()


@pytest.fixture
def fake_steamgriddb():
    return FakeSteamGridDBClient()


@pytest.fixture
def fake_steamspy():
    return FakeSteamSpyClient()


@pytest.fixture
def sleep_calls():
    return []


@pytest.fixture
def dispatched():
    """Stats chain steps queued by the coordinator"""
    return []


@pytest.fixture
def service_set(fake_igdb, fake_steam, fake_steamgriddb, fake_steamspy, sleep_calls, dispatched):
    from services.enrichment_service import SourceEnricher
    from services.factory import Services
    from services.image_resolver import ImageResolver
    from services.priority_service import PriorityScorer, PriorityService
    from services.relation_reconciler import RelationReconciler
    from services.staleness_scheduler import StalenessScheduler
    from services.stats_sync_service import RetryCoordinator

    priority = PriorityService(PriorityScorer())
    images = ImageResolver(fake_steamgriddb)
    reconciler = RelationReconciler()
    enricher = SourceEnricher(fake_igdb, fake_steam, reconciler, images, priority, active_sources=[1])
    return Services(
        igdb=fake_igdb,
        steam=fake_steam,
        steamgriddb=fake_steamgriddb,
        steamspy=fake_steamspy,
        priority=priority,
        images=images,
        reconciler=reconciler,
        enricher=enricher,
        scheduler=StalenessScheduler(enricher, sleep=sleep_calls.append),
        stats=RetryCoordinator(fake_steamspy, dispatch=lambda *args: dispatched.append(args)),
    )


@pytest.fixture
def app(service_set):
    """Flask app on an in-memory SQLite database"""
    from app import create_app
    from db import db

    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite://',
            'ASYNC_IMAGE_FETCH': False,
        },
        services=service_set,
    )
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def services(app):
    """Services wired to the fake clients, inside an app context"""
    return app.extensions["playdex"]


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def cli_runner(app):
    return app.test_cli_runner()


@pytest.fixture
def make_game(app):
    """Insert a Game row directly"""
    from db import db
    from models import Game

    def _make_game(igdb_id, **kwargs):
        kwargs.setdefault('name', f'Game {igdb_id}')
        game = Game(igdb_id=igdb_id, **kwargs)
        db.session.add(game)
        db.session.commit()
        return game

    return _make_game


@pytest.fixture
def make_steam_link(app):
    """Attach a Steam GameExternalSource link to a game"""
    from db import db
    from repositories.externalsources_repository import ExternalSourcesRepository

    def _make_steam_link(game, app_id, **kwargs):
        definition = ExternalSourcesRepository.get_or_create_definition(1, 'Steam')
        link = ExternalSourcesRepository.upsert_link(game, definition, str(app_id))
        for key, value in kwargs.items():
            setattr(link, key, value)
        db.session.commit()
        return link

    return _make_steam_link


@pytest.fixture
def igdb_payload():
    """Build a raw IGDB game payload"""

    def _igdb_payload(igdb_id=1942, **overrides):
        payload = {
            'id': igdb_id,
            'name': 'The Witcher 3: Wild Hunt',
            'slug': 'the-witcher-3-wild-hunt',
            'summary': 'Geralt hunts monsters.',
            'first_release_date': 1431993600,
            'game_type': 0,
            'cover': {'id': 1, 'image_id': 'co1wyy'},
            'artworks': [{'id': 2, 'image_id': 'ar5kx'}],
            'platforms': [{'id': 6, 'name': 'PC (Microsoft Windows)'}, {'id': 48, 'name': 'PlayStation 4'}],
            'genres': [{'id': 12, 'name': 'Role-playing (RPG)'}, {'id': 31, 'name': 'Adventure'}],
            'game_modes': [{'id': 1, 'name': 'Single player'}],
            'involved_companies': [
                {'id': 10, 'company': {'id': 908, 'name': 'CD Projekt RED'}, 'developer': True, 'publisher': False},
                {'id': 11, 'company': {'id': 1633, 'name': 'CD Projekt'}, 'developer': False, 'publisher': True},
            ],
            'screenshots': [{'id': 3, 'image_id': 'sc1'}],
            'videos': [{'id': 4, 'video_id': 'c0i88t0Kacs'}],
            'external_games': [
                {'id': 5, 'external_game_source': 1, 'uid': '292030', 'url': 'https://store.steampowered.com/app/292030'},
                {'id': 6, 'external_game_source': 5, 'uid': '1207664643', 'url': None},
            ],
            'release_dates': [
                {'id': 100, 'platform': 6, 'date': 1431993600, 'region': 8, 'human': 'May 19, 2015',
                 'y': 2015, 'm': 5, 'status': 6},
                {'id': 101, 'platform': 48, 'date': 1431993600, 'region': 8, 'human': 'May 19, 2015',
                 'y': 2015, 'm': 5, 'status': 6},
            ],
        }
        payload.update(overrides)
        return {k: v for k, v in payload.items() if v is not None}

    return _igdb_payload


@pytest.fixture
def steam_details():
    """Build a Steam appdetails ``data`` object"""

    def _steam_details(app_id='292030', **overrides):
        data = {
            'steam_appid': int(app_id),
            'name': 'The Witcher 3: Wild Hunt',
            'short_description': 'Steam description.',
            'release_date': {'coming_soon': False, 'date': '18 May, 2015'},
            'header_image': f'https://cdn.steamstatic.com/steam/apps/{app_id}/header.jpg',
            'background': f'https://cdn.steamstatic.com/steam/apps/{app_id}/page_bg.jpg',
            'price_overview': {'final_formatted': '$39.99'},
        }
        data.update(overrides)
        return data

    return _steam_details


@pytest.fixture
def days_ago():
    def _days_ago(days):
        return now_utc() - timedelta(days=days)

    return _days_ago


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing"""
    logger = MagicMock()
    logger.info = MagicMock()
    logger.error = MagicMock()
    logger.warning = MagicMock()
    logger.debug = MagicMock()
    return logger
