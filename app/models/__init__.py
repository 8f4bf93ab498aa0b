"""
Models package

One module per table family:
- game.py: Game
- reference.py: Platform, Genre, GameMode, Company, GameEngine, PlayerPerspective and their association tables
- releasedate.py: GameReleaseDate
- externalsource.py / gameexternalsource.py: external source definitions and per-game links
- steamgamedata.py: SteamSpy statistics
- syncrunlog.py: batch run log
"""

from .reference import (
    Platform,
    Genre,
    GameMode,
    Company,
    GameEngine,
    PlayerPerspective,
    game_platform,
    game_genre,
    game_game_mode,
    game_company,
    game_game_engine,
    game_player_perspective,
)
from .game import Game
from .releasedate import GameReleaseDate
from .externalsource import ExternalGameSource
from .gameexternalsource import GameExternalSource, backoff_hours
from .steamgamedata import SteamGameData
from .syncrunlog import SyncRunLog

__all__ = [
    "Platform",
    "Genre",
    "GameMode",
    "Company",
    "GameEngine",
    "PlayerPerspective",
    "game_platform",
    "game_genre",
    "game_game_mode",
    "game_company",
    "game_game_engine",
    "game_player_perspective",
    "Game",
    "GameReleaseDate",
    "ExternalGameSource",
    "GameExternalSource",
    "backoff_hours",
    "SteamGameData",
    "SyncRunLog",
]
