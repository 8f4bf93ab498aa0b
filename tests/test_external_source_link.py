"""
Tests for the GameExternalSource sync state machine
"""
from datetime import timedelta

import pytest


class TestBackoff:
    """Tests for the failure backoff schedule"""

    @pytest.mark.parametrize('retry_count,hours', [(0, 0), (1, 1), (2, 4), (3, 24), (4, 168), (9, 168)])
    def test_backoff_hours(self, retry_count, hours):
        """Test the schedule is 1h, 4h, 24h then a flat week"""
        from models import backoff_hours

        assert backoff_hours(retry_count) == hours

    def test_consecutive_failures(self, app, make_game, make_steam_link, days_ago):
        """Test five failures in a row give non-decreasing backoff windows"""
        game = make_game(1942)
        link = make_steam_link(game, 292030)
        now = days_ago(0)

        windows = []
        for _ in range(5):
            link.mark_as_failed(now)
            windows.append(link.next_retry_at - now)

        assert windows == [timedelta(hours=h) for h in (1, 4, 24, 168, 168)]
        assert link.retry_count == 5
        assert link.sync_status == 'failed'
        assert link.last_attempted_at == now

    def test_rate_limited_failures(self, app, make_game, make_steam_link, days_ago):
        """Test rate-limited failures skip a step and honour a longer Retry-After"""
        link = make_steam_link(make_game(1942), 292030)
        now = days_ago(0)

        link.mark_as_failed(now, rate_limited=True)
        assert link.next_retry_at - now == timedelta(hours=4)

        link.mark_as_failed(now, rate_limited=True, retry_after=3 * 24 * 3600)
        assert link.next_retry_at - now == timedelta(days=3)
        assert link.retry_count == 2

    def test_success_resets_failures(self, app, make_game, make_steam_link, days_ago):
        """Test a success clears the retry bookkeeping"""
        game = make_game(1942)
        link = make_steam_link(game, 292030)
        link.mark_as_failed(days_ago(2))
        link.mark_as_failed(days_ago(1))

        now = days_ago(0)
        link.mark_as_synced(now)

        assert link.sync_status == 'synced'
        assert link.retry_count == 0
        assert link.next_retry_at is None
        assert link.last_synced_at == now


class TestLinkQueries:
    """Tests for link query helpers"""

    def test_not_backing_off(self, app, make_game, make_steam_link, days_ago):
        """Test links inside their backoff window are filtered out"""
        from models import GameExternalSource

        waiting = make_steam_link(make_game(1), 10, sync_status='failed', retry_count=1,
                                  next_retry_at=days_ago(-1))
        ready = make_steam_link(make_game(2), 20, sync_status='failed', retry_count=1,
                                next_retry_at=days_ago(1))
        pending = make_steam_link(make_game(3), 30)

        ids = {link.id for link in GameExternalSource.query.filter(GameExternalSource.not_backing_off()).all()}

        assert ids == {ready.id, pending.id}
        assert waiting.id not in ids

    def test_upsert_link_updates_identifiers(self, app, make_game, make_steam_link):
        """Test a second upsert updates the uid on the existing link"""
        from models import GameExternalSource

        game = make_game(1942)
        first = make_steam_link(game, 292030)
        second = make_steam_link(game, 292031)

        assert first.id == second.id
        assert GameExternalSource.query.count() == 1
        assert second.external_uid == '292031'

    def test_full_url_from_store(self, app, make_game, make_steam_link):
        """Test the store URL is built from the source definition"""
        link = make_steam_link(make_game(1942), 292030)

        assert link.full_url == 'https://store.steampowered.com/app/292030'
