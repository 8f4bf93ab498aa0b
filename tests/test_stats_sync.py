"""
Tests for SteamSpy stats selection, sync and the task chain
"""
from datetime import timedelta
from types import SimpleNamespace

import pytest


STEAMSPY_ROW = {
    'appid': 292030,
    'name': 'The Witcher 3: Wild Hunt',
    'owners': '10,000,000 .. 20,000,000',
    'average_forever': 3000,
    'median_forever': '1500',
    'ccu': '12000',
    'price': '3999',
    'score_rank': '',
    'genre': 'RPG',
    'tags': {'RPG': 5000, 'Open World': 4000},
}


@pytest.fixture
def linked_games(make_game, make_steam_link, fake_steamspy):
    """Three Steam-linked games with priorities 10, 90 and 50"""

    def _linked_games(**link_kwargs):
        links = {}
        for igdb_id, priority in ((1, 10), (2, 90), (3, 50)):
            game = make_game(igdb_id, update_priority=priority)
            links[priority] = make_steam_link(game, 1000 + igdb_id, **link_kwargs)
            fake_steamspy.data[str(1000 + igdb_id)] = dict(STEAMSPY_ROW, appid=1000 + igdb_id)
        return links

    return _linked_games


class TestIsStale:
    """Tests for the stats staleness predicate"""

    @pytest.fixture
    def stats(self, services):
        return services.stats

    @staticmethod
    def _case(now, last_synced_days=None, released_days=None, priority=0):
        game = SimpleNamespace(
            first_release_date=now - timedelta(days=released_days) if released_days is not None else None,
            update_priority=priority,
        )
        link = SimpleNamespace(
            last_synced_at=now - timedelta(days=last_synced_days) if last_synced_days is not None else None,
        )
        return game, link

    def test_never_synced(self, stats, days_ago):
        """Test a link that never synced is always stale"""
        now = days_ago(0)
        assert stats.is_stale(*self._case(now), now=now) is True

    def test_synced_before_release(self, stats, days_ago):
        """Test pre-release stats are stale once the game is out"""
        now = days_ago(0)
        assert stats.is_stale(*self._case(now, last_synced_days=2, released_days=1), now=now) is True

    def test_recently_released(self, stats, days_ago):
        """Test games out for under two weeks refresh every three days"""
        now = days_ago(0)
        assert stats.is_stale(*self._case(now, last_synced_days=2, released_days=5), now=now) is False
        assert stats.is_stale(*self._case(now, last_synced_days=4, released_days=10), now=now) is True

    def test_high_priority(self, stats, days_ago):
        """Test high priority games refresh weekly"""
        now = days_ago(0)
        assert stats.is_stale(*self._case(now, last_synced_days=6, priority=60), now=now) is False
        assert stats.is_stale(*self._case(now, last_synced_days=8, priority=60), now=now) is True

    def test_low_priority(self, stats, days_ago):
        """Test low priority games refresh monthly"""
        now = days_ago(0)
        assert stats.is_stale(*self._case(now, last_synced_days=20, priority=10), now=now) is False
        assert stats.is_stale(*self._case(now, last_synced_days=31, priority=10), now=now) is True

    def test_upcoming_release_uses_priority_rule(self, stats, days_ago):
        """Test an unreleased game is not treated as recently released"""
        now = days_ago(0)
        assert stats.is_stale(*self._case(now, last_synced_days=5, released_days=-10), now=now) is False


class TestSelection:
    """Tests for candidate selection"""

    def test_priority_order_and_limit(self, services, linked_games):
        """Test priorities [10, 90, 50] with limit 2 select 90 then 50"""
        links = linked_games()

        selected = services.stats.select_candidates(threshold=0, limit=2)

        assert [link.id for link in selected] == [links[90].id, links[50].id]

    def test_threshold(self, services, linked_games):
        """Test games below the priority threshold are not selected"""
        links = linked_games()

        selected = services.stats.select_candidates(threshold=60)

        assert [link.id for link in selected] == [links[90].id]

    def test_backoff_excluded(self, services, linked_games, days_ago):
        """Test links waiting out a backoff window are not selected"""
        from db import db

        links = linked_games()
        links[90].mark_as_failed(days_ago(0))
        db.session.commit()

        selected = services.stats.select_candidates()

        assert [link.id for link in selected] == [links[50].id, links[10].id]

    def test_recently_synced_excluded(self, services, linked_games, days_ago):
        """Test fresh links are filtered by the staleness predicate"""
        links = linked_games(last_synced_at=days_ago(1), sync_status='synced')

        assert services.stats.select_candidates() == []
        assert services.stats.next_candidate(exclude=[links[90].id]) is None


class TestSyncLink:
    """Tests for syncing one link"""

    def test_success(self, services, make_game, make_steam_link, fake_steamspy):
        """Test stats are stored and the link marked synced"""
        game = make_game(1942)
        link = make_steam_link(game, 292030)
        fake_steamspy.data['292030'] = STEAMSPY_ROW

        assert services.stats.sync_link(link) is True

        stats = game.steam_stats
        assert stats.steam_app_id == '292030'
        assert stats.owners_range == {'min': 10000000, 'max': 20000000}
        assert stats.median_forever == 1500
        assert stats.price_formatted == '$39.99'
        assert stats.score_rank is None
        assert stats.tags == {'RPG': 5000, 'Open World': 4000}
        assert link.sync_status == 'synced'
        assert link.retry_count == 0

    def test_failure_moves_into_backoff(self, services, make_game, make_steam_link, fake_steamspy):
        """Test an upstream error marks the link failed"""
        from exceptions import UpstreamException
        from utils import ensure_utc

        link = make_steam_link(make_game(1942), 292030)
        fake_steamspy.errors['292030'] = UpstreamException('SteamSpy has no data', source='steamspy')

        assert services.stats.sync_link(link) is False

        assert link.sync_status == 'failed'
        assert link.retry_count == 1
        assert ensure_utc(link.next_retry_at) - ensure_utc(link.last_attempted_at) == timedelta(hours=1)

    def test_rate_limited_failure_waits_longer(self, services, make_game, make_steam_link, fake_steamspy):
        """Test a 429 from SteamSpy backs off longer than a plain upstream error"""
        from exceptions import RateLimitedException, UpstreamException
        from utils import ensure_utc

        limited = make_steam_link(make_game(1942), 292030)
        broken = make_steam_link(make_game(1020), 440)
        fake_steamspy.errors['292030'] = RateLimitedException('slow down', source='steamspy', retry_after=7200)
        fake_steamspy.errors['440'] = UpstreamException('HTTP 500', source='steamspy')

        services.stats.sync_link(limited)
        services.stats.sync_link(broken)

        limited_wait = ensure_utc(limited.next_retry_at) - ensure_utc(limited.last_attempted_at)
        broken_wait = ensure_utc(broken.next_retry_at) - ensure_utc(broken.last_attempted_at)
        assert broken_wait == timedelta(hours=1)
        assert limited_wait > broken_wait
        assert limited.retry_count == broken.retry_count == 1

    def test_fail_link(self, services, make_game, make_steam_link):
        """Test fail_link moves a link into backoff by id"""
        link = make_steam_link(make_game(1942), 292030)

        services.stats.fail_link(link.id)

        assert link.sync_status == 'failed'
        assert link.retry_count == 1


class TestChain:
    """Tests for the self-propagating stats task chain"""

    def test_start_chain(self, services, linked_games, dispatched):
        """Test the first step carries the first two candidates and the remaining count"""
        links = linked_games()

        assert services.stats.start_chain(threshold=0, limit=3) == 3
        assert dispatched == [(links[90].id, links[50].id, 2, 0)]

    def test_start_chain_empty(self, services, dispatched, app):
        """Test nothing is dispatched without candidates"""
        assert services.stats.start_chain() == 0
        assert dispatched == []

    def test_chain_walks_all_candidates(self, services, linked_games, dispatched, fake_steamspy):
        """Test each step syncs one link and forwards to a recomputed follower"""
        links = linked_games()
        services.stats.start_chain(limit=3)

        assert services.stats.run_chain_step(*dispatched[-1]) == (links[50].id, links[10].id, 1, 0)
        assert services.stats.run_chain_step(*dispatched[-1]) == (links[10].id, None, 0, 0)
        assert services.stats.run_chain_step(*dispatched[-1]) is None

        assert fake_steamspy.calls == ['1002', '1003', '1001']
        assert all(link.sync_status == 'synced' for link in links.values())
        assert len(dispatched) == 3

    def test_missing_link_still_forwards(self, services, linked_games, dispatched):
        """Test a deleted link does not break the chain"""
        links = linked_games()

        args = services.stats.run_chain_step(999999, links[50].id, 1)

        assert args == (links[50].id, None, 0, 0)
        assert dispatched == [args]

    def test_unexpected_sync_error_fails_link_and_forwards(self, services, linked_games, dispatched, monkeypatch):
        """Test an error outside the upstream call still moves the link into backoff"""
        links = linked_games()

        def broken_sync(link, now=None):
            raise KeyError('owners')

        monkeypatch.setattr(services.stats, 'sync_link', broken_sync)

        args = services.stats.run_chain_step(links[90].id, links[50].id, 2)

        assert links[90].sync_status == 'failed'
        assert args == (links[50].id, links[10].id, 1, 0)

    def test_dispatch_error_keeps_synced_link(self, services, linked_games):
        """Test a broker error while forwarding does not undo a successful sync"""
        links = linked_games()

        def broken_dispatch(*args):
            raise ConnectionError('broker unreachable')

        with pytest.raises(ConnectionError):
            services.stats.run_chain_step(links[90].id, links[50].id, 2, dispatch=broken_dispatch)

        assert links[90].sync_status == 'synced'
        assert links[90].retry_count == 0

    def test_failed_step_still_forwards(self, services, linked_games, dispatched, fake_steamspy):
        """Test a failing link is put into backoff and the chain continues"""
        from exceptions import UpstreamException

        links = linked_games()
        fake_steamspy.errors['1002'] = UpstreamException('down', source='steamspy')

        args = services.stats.run_chain_step(links[90].id, links[50].id, 2)

        assert links[90].sync_status == 'failed'
        assert args == (links[50].id, links[10].id, 1, 0)

    def test_run_inline(self, services, linked_games, dispatched):
        """Test the inline runner syncs every candidate without the worker"""
        links = linked_games()

        assert services.stats.run_inline(limit=3) == 3
        assert dispatched == []
        assert all(link.sync_status == 'synced' for link in links.values())
