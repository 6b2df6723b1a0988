"""
Unit tests for environment configuration.
"""

import pytest

from lambda_relay.config import RelayEnvVars, get_relay_env_vars


@pytest.fixture
def clean_env(monkeypatch):
    monkeypatch.setenv("LAMBDA_ENV_MODELER_DISABLE_CACHE", "true")
    for name in RelayEnvVars.model_fields:
        if name.startswith("RELAY_"):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestRelayEnvVars:
    """Test cases for RelayEnvVars."""

    def test_defaults(self, clean_env):
        settings = get_relay_env_vars()

        assert settings.RELAY_TARGETS == {}
        assert settings.RELAY_DEFAULT_TIMEOUT_MS == 10000
        assert settings.RELAY_DEFAULT_MAX_RETRIES == 2
        assert settings.RELAY_BACKOFF_BASE_MS == 100
        assert settings.RELAY_BACKOFF_MULTIPLIER == 2.0
        assert settings.RELAY_BACKOFF_MAX_MS == 5000
        assert settings.RELAY_MIN_REMAINING_MS == 200

    def test_values_from_environment(self, clean_env):
        clean_env.setenv("RELAY_TARGETS", '{"orders": "orders-prod"}')
        clean_env.setenv("RELAY_DEFAULT_TIMEOUT_MS", "2500")
        clean_env.setenv("RELAY_DEFAULT_MAX_RETRIES", "0")

        settings = get_relay_env_vars()

        assert settings.RELAY_TARGETS == {"orders": "orders-prod"}
        assert settings.RELAY_DEFAULT_TIMEOUT_MS == 2500
        assert settings.RELAY_DEFAULT_MAX_RETRIES == 0

    def test_blank_targets(self, clean_env):
        clean_env.setenv("RELAY_TARGETS", "  ")

        assert get_relay_env_vars().RELAY_TARGETS == {}

    def test_invalid_targets_json(self, clean_env):
        clean_env.setenv("RELAY_TARGETS", "{orders: nope")

        with pytest.raises(ValueError, match="RELAY_TARGETS"):
            get_relay_env_vars()

    def test_invalid_timeout(self, clean_env):
        clean_env.setenv("RELAY_DEFAULT_TIMEOUT_MS", "0")

        with pytest.raises(ValueError):
            get_relay_env_vars()

    def test_backoff_bounds(self):
        with pytest.raises(ValueError):
            RelayEnvVars(RELAY_BACKOFF_BASE_MS=1000, RELAY_BACKOFF_MAX_MS=10)

    def test_resolve_target(self, relay_settings):
        assert relay_settings.resolve_target("orders").endswith(":function:orders")
        assert relay_settings.resolve_target("billing") == "billing"
