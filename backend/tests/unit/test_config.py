"""
Tests for application configuration.
"""

from core import config
from core.constants import CORS_ORIGINS, IMPORT_BATCH_SIZE, WAIT_BANDS


class TestConfig:
    """Test configuration defaults and derived constants."""

    def test_database_url_points_at_test_database(self):
        """Test the test suite overrides DATABASE_URL before the app loads."""
        assert config.DATABASE_URL == config.get_database_url()
        assert "clinic_reception_dev" not in config.DATABASE_URL

    def test_is_testing_detected(self):
        """Test .env loading is skipped under pytest."""
        assert config.is_testing is True

    def test_strategy_defaults(self):
        """Test selectable strategies have valid defaults."""
        assert config.PATIENT_VERIFICATION_STRATEGY in ("name", "birth_date")
        assert config.WAIT_DISPLAY_STRATEGY in ("minutes", "band")

    def test_cors_origins_have_no_blanks(self):
        """Test empty origins are filtered out."""
        assert all(origin and origin.strip() for origin in CORS_ORIGINS)

    def test_import_batch_stays_under_ceiling(self):
        assert 0 < IMPORT_BATCH_SIZE <= 500

    def test_wait_bands_ascending(self):
        bounds = [upper for upper, _ in WAIT_BANDS]
        assert bounds == sorted(bounds)
