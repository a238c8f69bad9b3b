"""
Tests for settings defaults and derived properties.
"""
from app.core.config import Settings


class TestSettings:
    def test_default_database_url_names_the_installed_driver(self):
        default = Settings.model_fields["DATABASE_URL"].default
        assert default.startswith("postgresql+psycopg2://")

    def test_range_cap_default(self):
        assert Settings.model_fields["MAX_RANGE_DAYS"].default == 3660

    def test_cors_origins_list(self):
        assert Settings(CORS_ORIGINS="*").cors_origins_list == ["*"]
        assert Settings(CORS_ORIGINS="https://a.test, https://b.test,").cors_origins_list == [
            "https://a.test", "https://b.test",
        ]

    def test_ai_enabled_needs_a_key(self):
        assert not Settings(AI_API_KEY="  ").ai_enabled
        assert Settings(AI_API_KEY="sk-test").ai_enabled
