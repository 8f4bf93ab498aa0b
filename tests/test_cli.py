"""
Tests for the command line entry points
"""


class TestBatchCommands:
    """Tests for refresh-stale, refresh-popular and refresh-recent"""

    def test_refresh_stale_empty(self, cli_runner):
        """Test an empty catalog reports nothing to do and exits 0"""
        result = cli_runner.invoke(args=['refresh-stale'])

        assert result.exit_code == 0
        assert 'No stale games found.' in result.output

    def test_refresh_stale_summary(self, cli_runner, make_game, fake_igdb, igdb_payload):
        """Test the summary table lists updated and failed counts"""
        make_game(1942)
        make_game(404)
        fake_igdb.add(igdb_payload())

        result = cli_runner.invoke(args=['refresh-stale', '--min-days', '30', '--batch-size', '10'])

        assert result.exit_code == 0
        assert 'Batch update complete!' in result.output
        lines = result.output.splitlines()
        assert any(line.split() == ['Updated', '1'] for line in lines)
        assert any(line.split() == ['Failed', '1'] for line in lines)

    def test_refresh_stale_rejects_zero(self, cli_runner):
        """Test option ranges are validated before anything runs"""
        result = cli_runner.invoke(args=['refresh-stale', '--min-days', '0'])

        assert result.exit_code == 2

    def test_refresh_popular_empty(self, cli_runner):
        """Test the popular batch with no candidates"""
        result = cli_runner.invoke(args=['refresh-popular', '--min-views', '3'])

        assert result.exit_code == 0
        assert 'No popular games need updating.' in result.output

    def test_refresh_recent_empty(self, cli_runner):
        """Test the recent batch with no candidates"""
        result = cli_runner.invoke(args=['refresh-recent', '--days', '30'])

        assert result.exit_code == 0
        assert 'No recently released games need updating.' in result.output


class TestFetchGame:
    """Tests for fetch-game"""

    def test_fetch_game_created(self, cli_runner, fake_igdb, igdb_payload):
        """Test a new game is reported as created"""
        fake_igdb.add(igdb_payload())

        result = cli_runner.invoke(args=['fetch-game', '--igdb-id', '1942'])

        assert result.exit_code == 0
        assert 'Created: The Witcher 3: Wild Hunt (IGDB 1942)' in result.output

    def test_fetch_game_updated(self, cli_runner, make_game, fake_igdb, igdb_payload):
        """Test an existing game is reported as updated"""
        make_game(1942)
        fake_igdb.add(igdb_payload())

        result = cli_runner.invoke(args=['fetch-game', '--igdb-id', '1942'])

        assert result.exit_code == 0
        assert 'Updated: The Witcher 3: Wild Hunt' in result.output

    def test_fetch_game_not_found(self, cli_runner, app):
        """Test an unknown id exits 1"""
        result = cli_runner.invoke(args=['fetch-game', '--igdb-id', '999999'])

        assert result.exit_code == 1
        assert 'not found' in result.output

    def test_fetch_game_requires_id(self, cli_runner):
        """Test --igdb-id is mandatory"""
        assert cli_runner.invoke(args=['fetch-game']).exit_code == 2


class TestImportUpcoming:
    """Tests for import-upcoming"""

    def test_import(self, cli_runner, fake_igdb, igdb_payload):
        """Test imported games are summarized"""
        fake_igdb.released = [igdb_payload(1, name='One', slug='one')]

        result = cli_runner.invoke(args=['import-upcoming', '--start-date', '2026-11-01', '--platforms', '6,167'])

        assert result.exit_code == 0
        assert fake_igdb.calls[0][3] == [6, 167]
        assert any(line.split() == ['Updated', '1'] for line in result.output.splitlines())

    def test_no_games(self, cli_runner):
        """Test an empty window"""
        result = cli_runner.invoke(args=['import-upcoming'])

        assert result.exit_code == 0
        assert 'No games found.' in result.output

    def test_bad_start_date(self, cli_runner):
        """Test a malformed date exits 1"""
        result = cli_runner.invoke(args=['import-upcoming', '--start-date', 'tomorrow'])

        assert result.exit_code == 1
        assert 'Invalid start date' in result.output

    def test_bad_platforms(self, cli_runner):
        """Test a malformed platform list is a usage error"""
        result = cli_runner.invoke(args=['import-upcoming', '--platforms', 'pc,switch'])

        assert result.exit_code == 2

    def test_limit_range(self, cli_runner):
        """Test --limit above 500 is rejected"""
        assert cli_runner.invoke(args=['import-upcoming', '--limit', '501']).exit_code == 2


class TestSyncStats:
    """Tests for sync-stats"""

    def test_no_candidates(self, cli_runner):
        """Test nothing eligible"""
        result = cli_runner.invoke(args=['sync-stats'])

        assert result.exit_code == 0
        assert 'No games eligible for stats sync.' in result.output

    def test_dispatches_chain(self, cli_runner, make_game, make_steam_link, dispatched):
        """Test the chain is started on the worker queue"""
        make_steam_link(make_game(1942, update_priority=40), 292030)

        result = cli_runner.invoke(args=['sync-stats', '--threshold', '10', '--limit', '5'])

        assert result.exit_code == 0
        assert 'Found 1 games eligible for sync.' in result.output
        assert len(dispatched) == 1

    def test_inline(self, cli_runner, make_game, make_steam_link, fake_steamspy, dispatched):
        """Test --inline runs the chain in process"""
        make_steam_link(make_game(1942), 292030)
        fake_steamspy.data['292030'] = {'appid': 292030, 'owners': '0 .. 20,000'}

        result = cli_runner.invoke(args=['sync-stats', '--inline'])

        assert result.exit_code == 0
        assert 'Processed 1 stats link(s).' in result.output
        assert dispatched == []


class TestSetupCommands:
    """Tests for sync-sources and init-db"""

    def test_sync_sources(self, cli_runner, fake_igdb):
        """Test source definitions are created"""
        fake_igdb.sources = [{'id': 1, 'name': 'Steam'}, {'id': 5, 'name': 'GOG'}]

        result = cli_runner.invoke(args=['sync-sources'])

        assert result.exit_code == 0
        assert any(line.split() == ['Created', '2'] for line in result.output.splitlines())

    def test_init_db(self, cli_runner):
        """Test the built-in source definitions are seeded"""
        from models import ExternalGameSource

        result = cli_runner.invoke(args=['init-db'])

        assert result.exit_code == 0
        assert ExternalGameSource.query.filter_by(igdb_id=1).one().name == 'Steam'
