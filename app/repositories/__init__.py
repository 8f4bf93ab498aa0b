"""
Repositories package
Each repository encapsulates database queries for one model family:
- games_repository.py
- externalsources_repository.py
- syncrunlog_repository.py

Usage:
    from repositories.games_repository import GamesRepository
    game = GamesRepository.get_by_igdb_id(1942)
"""
