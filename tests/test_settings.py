"""
Tests for settings loading and the exception hierarchy
"""
import yaml
import pytest


class TestSettings:
    """Tests for settings.yaml and environment overrides"""

    def test_defaults_without_file(self, tmp_path):
        """Test defaults apply when no file exists"""
        from settings import load_settings

        settings = load_settings(config_file=str(tmp_path / 'missing.yaml'))

        assert settings['stats']['high_priority_threshold'] == 50
        assert settings['sync']['active_external_sources'] == [1]
        assert settings['apis']['igdb_rate_limit_delay_ms'] == 280

    def test_file_overrides_defaults(self, tmp_path):
        """Test file values are merged section by section"""
        from settings import load_settings

        path = tmp_path / 'settings.yaml'
        path.write_text(yaml.safe_dump({'apis': {'igdb_client_id': 'abc'}, 'stats': {'low_priority_stale_days': 45}}))

        settings = load_settings(config_file=str(path))

        assert settings['apis']['igdb_client_id'] == 'abc'
        assert settings['apis']['steam_country_code'] == 'us'
        assert settings['stats']['low_priority_stale_days'] == 45
        assert settings['stats']['high_priority_stale_days'] == 7

    def test_environment_overrides(self, tmp_path, monkeypatch):
        """Test credentials and the active source list come from the environment"""
        from settings import load_settings

        monkeypatch.setenv('IGDB_CLIENT_ID', 'env-id')
        monkeypatch.setenv('IGDB_ACTIVE_EXTERNAL_SOURCES', '1, 5,26')
        monkeypatch.setenv('IGDB_RATE_LIMIT_DELAY_MS', 'fast')

        settings = load_settings(config_file=str(tmp_path / 'missing.yaml'))

        assert settings['apis']['igdb_client_id'] == 'env-id'
        assert settings['sync']['active_external_sources'] == [1, 5, 26]
        assert settings['apis']['igdb_rate_limit_delay_ms'] == 280

    def test_save_and_reload(self, tmp_path):
        """Test saved settings are read back"""
        from settings import load_settings, save_settings

        path = str(tmp_path / 'config' / 'settings.yaml')
        settings = load_settings(config_file=str(tmp_path / 'missing.yaml'))
        settings['sync']['fetch_images'] = False
        save_settings(settings, config_file=path)

        assert load_settings(config_file=path)['sync']['fetch_images'] is False

    def test_verify_settings(self):
        """Test missing credentials and bad source lists are reported"""
        from settings import verify_settings

        ok, errors = verify_settings({
            'apis': {'igdb_client_id': 'id', 'igdb_client_secret': ''},
            'sync': {'active_external_sources': ['steam']},
        })

        assert ok is False
        assert [e['path'] for e in errors] == ['apis/igdb', 'sync/active_external_sources']

    def test_build_services_from_settings(self, tmp_path):
        """Test the factory converts millisecond delays and shares settings"""
        from services.factory import build_services
        from settings import load_settings

        settings = load_settings(config_file=str(tmp_path / 'missing.yaml'))
        services = build_services(settings)

        assert services.igdb.rate_limit_delay == pytest.approx(0.28)
        assert services.steamspy.rate_limit_delay == pytest.approx(0.25)
        assert services.enricher.active_sources == [1]
        assert services.stats.settings['recently_released_stale_days'] == 3


class TestExceptions:
    """Tests for the exception hierarchy"""

    def test_rate_limited_is_upstream(self):
        """Test RateLimitedException is handled as an upstream error"""
        from exceptions import PlaydexException, RateLimitedException, UpstreamException

        e = RateLimitedException('slow down', source='igdb', retry_after=2)

        assert isinstance(e, UpstreamException)
        assert isinstance(e, PlaydexException)
        assert e.to_dict() == {'error': True, 'code': 'RATE_LIMITED', 'message': 'slow down', 'source': 'igdb'}

    def test_not_found_is_not_upstream(self):
        """Test NotFoundException is kept apart from transient errors"""
        from exceptions import NotFoundException, UpstreamException

        assert not issubclass(NotFoundException, UpstreamException)
        assert NotFoundException('gone', source='igdb').code == 'NOT_FOUND'
