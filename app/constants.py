import os

APP_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.environ.get('PLAYDEX_DATA_DIR', os.path.join(APP_DIR, 'data'))
CONFIG_DIR = os.environ.get('PLAYDEX_CONFIG_DIR', os.path.join(APP_DIR, 'config'))
DB_FILE = os.path.join(CONFIG_DIR, 'playdex.db')
CONFIG_FILE = os.path.join(CONFIG_DIR, 'settings.yaml')
COVERS_DIR = os.path.join(DATA_DIR, 'covers')

PLAYDEX_DB = os.environ.get('DATABASE_URL', 'sqlite:///' + DB_FILE)

BUILD_VERSION = '20261019_0900'

# Upstream endpoints
IGDB_BASE_URL = 'https://api.igdb.com/v4'
TWITCH_TOKEN_URL = 'https://id.twitch.tv/oauth2/token'
STEAM_APPDETAILS_URL = 'https://store.steampowered.com/api/appdetails'
STEAMGRIDDB_BASE_URL = 'https://www.steamgriddb.com/api/v2'
STEAMSPY_BASE_URL = 'https://steamspy.com/api.php'
IGDB_IMAGE_URL = 'https://images.igdb.com/igdb/image/upload/t_{size}/{image_id}.jpg'

# Source names used in logs, metrics and exceptions
SOURCE_IGDB = 'igdb'
SOURCE_STEAM = 'steam'
SOURCE_STEAMGRIDDB = 'steamgriddb'
SOURCE_STEAMSPY = 'steamspy'

# IGDB external game source ids
EXTERNAL_SOURCE_STEAM = 1
EXTERNAL_SOURCE_GOG = 5
EXTERNAL_SOURCE_EPIC = 26

EXTERNAL_SOURCE_NAMES = {
    EXTERNAL_SOURCE_STEAM: 'Steam',
    EXTERNAL_SOURCE_GOG: 'GOG',
    10: 'YouTube',
    11: 'Xbox Marketplace',
    13: 'Apple App Store',
    14: 'Google Play',
    15: 'itch.io',
    20: 'Amazon ASIN',
    22: 'Twitch',
    23: 'Android',
    EXTERNAL_SOURCE_EPIC: 'Epic Games Store',
    28: 'Oculus',
    29: 'Utomik',
    31: 'Focus Entertainment',
    36: 'PlayStation Store',
    37: 'Xbox Game Pass',
}

EXTERNAL_SOURCE_STORE_URLS = {
    EXTERNAL_SOURCE_STEAM: 'https://store.steampowered.com/app/',
    EXTERNAL_SOURCE_GOG: 'https://www.gog.com/game/',
    EXTERNAL_SOURCE_EPIC: 'https://store.epicgames.com/p/',
}

# Field projection for a single game. Keeps nested relations shallow.
IGDB_GAME_FIELDS = ', '.join([
    'name', 'slug', 'first_release_date', 'summary', 'game_type',
    'cover.image_id', 'artworks.image_id',
    'platforms.id', 'platforms.name',
    'genres.id', 'genres.name',
    'game_modes.id', 'game_modes.name',
    'game_engines.id', 'game_engines.name',
    'player_perspectives.id', 'player_perspectives.name',
    'involved_companies.company.id', 'involved_companies.company.name',
    'involved_companies.developer', 'involved_companies.publisher',
    'similar_games.id', 'similar_games.name', 'similar_games.cover.image_id',
    'screenshots.image_id', 'videos.video_id',
    'external_games.external_game_source', 'external_games.category',
    'external_games.uid', 'external_games.url',
    'websites.category', 'websites.url',
    'release_dates.id', 'release_dates.platform', 'release_dates.date',
    'release_dates.region', 'release_dates.human', 'release_dates.y',
    'release_dates.m', 'release_dates.d', 'release_dates.status',
])

# IGDB allows at most 500 rows per query
IGDB_MAX_LIMIT = 500

# PC, PlayStation 5, Xbox Series X|S, Nintendo Switch
DEFAULT_PLATFORM_IDS = [6, 167, 169, 130]

STEAM_APPDETAILS_FILTERS = ','.join([
    'name', 'short_description', 'release_date', 'header_image', 'background',
    'platforms', 'price_overview', 'recommendations', 'metacritic',
])

IMAGE_TYPES = ('cover', 'hero', 'logo')
IMAGE_FIELDS = {
    'cover': 'cover_image_id',
    'hero': 'hero_image_id',
    'logo': 'logo_image_id',
}

SYNC_STATUS_PENDING = 'pending'
SYNC_STATUS_SYNCED = 'synced'
SYNC_STATUS_FAILED = 'failed'

# Consecutive failures -> hours until the next attempt. The last entry repeats.
BACKOFF_SCHEDULE_HOURS = [1, 4, 24, 168]

BATCH_STALE = 'stale'
BATCH_POPULAR = 'popular'
BATCH_RECENT = 'recent'
BATCH_IMPORT = 'import'

DEFAULT_SETTINGS = {
    "apis": {
        "igdb_client_id": "",
        "igdb_client_secret": "",
        "igdb_rate_limit_delay_ms": 280,
        "steamgriddb_api_key": "",
        "steam_country_code": "us",
        "request_timeout": 15,
    },
    "sync": {
        # IGDB external game source ids kept as GameExternalSource links
        "active_external_sources": [EXTERNAL_SOURCE_STEAM],
        "stale_delay_seconds": 0.5,
        "popular_delay_seconds": 0.3,
        "recent_delay_seconds": 0.3,
        "popular_min_days": 14,
        "recent_min_days": 14,
        "fetch_images": True,
    },
    "stats": {
        "rate_limit_delay_ms": 250,
        "high_priority_threshold": 50,
        "high_priority_stale_days": 7,
        "low_priority_stale_days": 30,
        "recently_released_days": 14,
        "recently_released_stale_days": 3,
    },
}
