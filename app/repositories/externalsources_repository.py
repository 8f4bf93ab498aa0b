"""
Repository for ExternalGameSource and GameExternalSource operations
"""

from sqlalchemy.exc import IntegrityError

from db import db, upsert_insert
from constants import EXTERNAL_SOURCE_NAMES
from models.externalsource import ExternalGameSource
from models.game import Game
from models.gameexternalsource import GameExternalSource
from utils import slugify


class ExternalSourcesRepository:
    """Repository for external source definitions and per-game links"""

    @staticmethod
    def get_definition(igdb_id):
        return ExternalGameSource.query.filter(ExternalGameSource.igdb_id == igdb_id).first()

    @staticmethod
    def get_or_create_definition(igdb_id, name=None):
        """Find or create a source definition. Unknown ids without a name are not created."""
        name = name or EXTERNAL_SOURCE_NAMES.get(igdb_id)
        if not name:
            return ExternalSourcesRepository.get_definition(igdb_id)
        stmt = (
            upsert_insert(ExternalGameSource)
            .values(igdb_id=igdb_id, name=name, slug=slugify(name))
            .on_conflict_do_nothing(index_elements=["igdb_id"])
        )
        db.session.execute(stmt)
        return ExternalSourcesRepository.get_definition(igdb_id)

    @staticmethod
    def upsert_definition(igdb_id, name):
        """Create or rename a source definition. Returns True when a row was created."""
        existing = ExternalSourcesRepository.get_definition(igdb_id)
        if existing:
            existing.name = name
            existing.slug = slugify(name)
            return False
        db.session.add(ExternalGameSource(igdb_id=igdb_id, name=name, slug=slugify(name)))
        return True

    @staticmethod
    def get_link(id):
        return db.session.get(GameExternalSource, id)

    @staticmethod
    def upsert_link(game, definition, external_uid, external_url=None):
        """
        Create or update the (game, source) link. Only identifiers change here,
        the sync bookkeeping is left to the state machine.
        """
        link = GameExternalSource.query.filter_by(
            game_id=game.id, external_game_source_id=definition.id
        ).first()
        if link is None:
            link = GameExternalSource(
                game_id=game.id,
                external_game_source_id=definition.id,
                external_uid=external_uid,
                external_url=external_url,
            )
            try:
                with db.session.begin_nested():
                    db.session.add(link)
            except IntegrityError:
                # Another worker created it first
                link = GameExternalSource.query.filter_by(
                    game_id=game.id, external_game_source_id=definition.id
                ).one()
        if link.external_uid != external_uid:
            link.external_uid = external_uid
        if external_url and link.external_url != external_url:
            link.external_url = external_url
        return link

    @staticmethod
    def stats_candidates(source_igdb_id, threshold=0, now=None):
        """
        Links for ``source_igdb_id`` whose game has update_priority >= threshold
        and that are not inside a backoff window, highest priority first.
        The age-based staleness predicate is applied by the caller.
        """
        return (
            GameExternalSource.for_source(source_igdb_id)
            .join(Game, Game.id == GameExternalSource.game_id)
            .filter(Game.update_priority >= threshold)
            .filter(GameExternalSource.not_backing_off(now))
            .order_by(Game.update_priority.desc(), GameExternalSource.id.asc())
        )

