"""Tests for engine settings."""

import pytest
from pydantic import ValidationError

from space.platform.settings import Environment, Settings, get_settings, reset_settings


@pytest.mark.unit
class TestSettings:
    """Defaults and environment overrides."""

    def test_defaults(self):
        settings = Settings()

        assert settings.cache.backend == "memory"
        assert settings.pricing.fetch_timeout_seconds == 5.0
        assert settings.pricing.fetch_concurrency == 8
        assert settings.pricing.verify_ssl is False
        assert settings.evaluation.cache_ttl == 3600
        assert settings.evaluation.default_renewal_days == 30

    def test_nested_environment_variables(self, monkeypatch):
        monkeypatch.setenv("PRICING__FETCH_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("CACHE__BACKEND", "redis")
        monkeypatch.setenv("REDIS__HOST", "cache.internal")
        monkeypatch.setenv("ENVIRONMENT", "PRODUCTION")

        settings = Settings()

        assert settings.pricing.fetch_timeout_seconds == 2.5
        assert settings.cache.backend == "redis"
        assert settings.redis.redis_url == "redis://cache.internal:6379/0"
        assert settings.environment is Environment.PRODUCTION
        assert settings.is_production

    def test_redis_url(self):
        redis = Settings.RedisSettings(password="secret", db=2)
        assert redis.redis_url == "redis://:secret@localhost:6379/2"

        explicit = Settings.RedisSettings(url="redis://other:6380/1")
        assert explicit.redis_url == "redis://other:6380/1"

    @pytest.mark.parametrize(
        "env,value",
        [
            ("PRICING__FETCH_CONCURRENCY", "11"),
            ("PRICING__FETCH_CONCURRENCY", "0"),
            ("CACHE__BACKEND", "memcached"),
        ],
    )
    def test_invalid_values(self, monkeypatch, env, value):
        monkeypatch.setenv(env, value)

        with pytest.raises(ValidationError):
            Settings()

    def test_testing_flag(self):
        assert Settings(environment="test").is_testing
        assert Settings(testing=True).is_testing

    def test_singleton(self):
        reset_settings()
        try:
            assert get_settings() is get_settings()
        finally:
            reset_settings()
