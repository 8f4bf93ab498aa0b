"""
SteamSpy statistics sync for games linked to Steam.

Eligibility follows the link's own state: never synced links go first, games
that just came out are refreshed every few days, the rest on a priority based
schedule. Failed links sit out their backoff window.

Work runs as a self-propagating task chain: each step syncs one link and then
dispatches the next one together with the best eligible follower, so only one
SteamSpy request is in flight at a time.
"""
from datetime import timedelta
from typing import Callable, Dict, Iterable, List, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError

from constants import DEFAULT_SETTINGS, EXTERNAL_SOURCE_STEAM, SOURCE_STEAMSPY, SYNC_STATUS_FAILED, SYNC_STATUS_SYNCED
from db import db
from exceptions import PlaydexException, RateLimitedException
from metrics import stats_link_transitions_total
from models import SteamGameData
from repositories.externalsources_repository import ExternalSourcesRepository
from utils import ensure_utc, now_utc

logger = structlog.get_logger("main")

DEFAULT_LIMIT = 500

STEAMSPY_INT_FIELDS = (
    "players_forever",
    "players_2weeks",
    "average_forever",
    "average_2weeks",
    "median_forever",
    "median_2weeks",
    "ccu",
    "price",
)


def _int(value):
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class RetryCoordinator:
    def __init__(
        self,
        client,
        stats_settings: Optional[Dict] = None,
        dispatch: Optional[Callable] = None,
        source_igdb_id: int = EXTERNAL_SOURCE_STEAM,
    ):
        self.client = client
        self.settings = dict(DEFAULT_SETTINGS["stats"])
        self.settings.update(stats_settings or {})
        self.dispatch = dispatch
        self.source_igdb_id = source_igdb_id

    def is_stale(self, game, link, now=None) -> bool:
        """Whether ``link`` is due for a stats refresh, ignoring backoff"""
        now = now or now_utc()
        last_synced = ensure_utc(link.last_synced_at)
        if last_synced is None:
            return True

        release_date = ensure_utc(game.first_release_date)
        # Pre-release numbers are useless once the game is out
        if release_date and last_synced < release_date <= now:
            return True

        age = now - last_synced
        if release_date and release_date <= now and now - release_date <= timedelta(
            days=self.settings["recently_released_days"]
        ):
            return age >= timedelta(days=self.settings["recently_released_stale_days"])

        if (game.update_priority or 0) >= self.settings["high_priority_threshold"]:
            stale_days = self.settings["high_priority_stale_days"]
        else:
            stale_days = self.settings["low_priority_stale_days"]
        return age >= timedelta(days=stale_days)

    def _eligible(self, threshold: int, now, exclude: Iterable[int] = ()):
        exclude = set(i for i in exclude if i is not None)
        query = ExternalSourcesRepository.stats_candidates(self.source_igdb_id, threshold, now)
        for link in query:
            if link.id in exclude or link.game is None:
                continue
            if self.is_stale(link.game, link, now):
                yield link

    def select_candidates(self, threshold: int = 0, limit: int = DEFAULT_LIMIT, now=None) -> List:
        """Eligible links, highest game priority first, at most ``limit``"""
        now = now or now_utc()
        candidates = []
        for link in self._eligible(threshold, now):
            candidates.append(link)
            if len(candidates) >= limit:
                break
        return candidates

    def next_candidate(self, threshold: int = 0, exclude: Iterable[int] = (), now=None):
        """Best eligible link other than the ``exclude`` ids"""
        return next(self._eligible(threshold, now or now_utc(), exclude), None)

    def sync_link(self, link, now=None) -> bool:
        """Fetch SteamSpy stats for one link and store them. Any failure moves the link into backoff."""
        now = now or now_utc()
        game = link.game

        if not link.external_uid or game is None:
            logger.warning("Stats link without app id or game", link_id=link.id)
            return self._fail(link, now)

        try:
            data = self.client.fetch_game_details(link.external_uid)
        except PlaydexException as e:
            logger.warning(
                "Stats sync failed",
                link_id=link.id,
                igdb_id=game.igdb_id,
                source=SOURCE_STEAMSPY,
                error=str(e),
            )
            return self._fail(link, now, e)

        try:
            stats = SteamGameData.query.filter_by(game_id=game.id).first()
            if stats is None:
                stats = SteamGameData(game_id=game.id)
                db.session.add(stats)
            stats.steam_app_id = str(link.external_uid)
            stats.owners = data.get("owners")
            for field in STEAMSPY_INT_FIELDS:
                setattr(stats, field, _int(data.get(field)))
            stats.score_rank = _int(data.get("score_rank"))
            stats.genre = data.get("genre") or None
            stats.tags = data.get("tags") or None

            link.mark_as_synced(now)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to store stats", link_id=link.id, igdb_id=game.igdb_id, error=str(e))
            return self._fail(link, now)

        stats_link_transitions_total.labels(status=SYNC_STATUS_SYNCED).inc()
        logger.info("Synced game stats", link_id=link.id, igdb_id=game.igdb_id, owners=data.get("owners"))
        return True

    def _fail(self, link, now, error=None) -> bool:
        link.mark_as_failed(
            now,
            rate_limited=isinstance(error, RateLimitedException),
            retry_after=getattr(error, "retry_after", None),
        )
        db.session.commit()
        stats_link_transitions_total.labels(status=SYNC_STATUS_FAILED).inc()
        return False

    def start_chain(self, threshold: int = 0, limit: int = DEFAULT_LIMIT, dispatch: Optional[Callable] = None) -> int:
        """Select candidates and dispatch the first chain step. Returns the number selected."""
        dispatch = dispatch or self.dispatch
        candidates = self.select_candidates(threshold, limit)
        if not candidates:
            logger.info("No games eligible for stats sync", threshold=threshold)
            return 0

        first_id = candidates[0].id
        second_id = candidates[1].id if len(candidates) > 1 else None
        dispatch(first_id, second_id, len(candidates) - 1, threshold)
        logger.info("Dispatched stats sync chain", first_link_id=first_id, candidates=len(candidates))
        return len(candidates)

    def run_chain_step(
        self,
        link_id: int,
        next_link_id: Optional[int],
        remaining: int,
        threshold: int = 0,
        dispatch: Optional[Callable] = None,
    ):
        """
        Sync ``link_id`` then hand over to ``next_link_id``. A missing link still
        forwards the chain, and an unexpected sync error puts the link into backoff
        before forwarding. Dispatch errors propagate. Returns the arguments
        dispatched, or None at the end.
        """
        link = ExternalSourcesRepository.get_link(link_id)
        if link is None:
            logger.warning("Stats link not found", link_id=link_id)
        else:
            try:
                self.sync_link(link)
            except Exception as e:
                logger.error("Stats sync step failed", link_id=link_id, error=str(e))
                self.fail_link(link_id)
        return self.forward(link_id, next_link_id, remaining, threshold, dispatch)

    def forward(self, link_id, next_link_id, remaining, threshold=0, dispatch: Optional[Callable] = None):
        """Dispatch the step after ``link_id``, recomputing the follower from current eligibility"""
        dispatch = dispatch or self.dispatch
        if not next_link_id or remaining < 1:
            logger.info("Stats sync chain finished", last_link_id=link_id)
            return None

        following = None
        if remaining > 1:
            candidate = self.next_candidate(threshold, exclude=(link_id, next_link_id))
            following = candidate.id if candidate is not None else None

        args = (next_link_id, following, remaining - 1, threshold)
        dispatch(*args)
        return args

    def run_inline(self, threshold: int = 0, limit: int = DEFAULT_LIMIT) -> int:
        """Run the whole chain in this process (no worker). Returns the number of steps run."""
        pending = []
        self.start_chain(threshold, limit, dispatch=lambda *args: pending.append(args))
        steps = 0
        while pending:
            self.run_chain_step(*pending.pop(0), dispatch=lambda *args: pending.append(args))
            steps += 1
        return steps

    def fail_link(self, link_id: int):
        """Move ``link_id`` into backoff after an unexpected error in its step"""
        db.session.rollback()
        link = ExternalSourcesRepository.get_link(link_id)
        if link is not None:
            self._fail(link, now_utc())
