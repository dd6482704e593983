"""Tests for zcapld.config - ZcapSettings and global config management."""

from __future__ import annotations

from zcapld.config import ZcapSettings, clear_config_cache, get_config

# ============================================================================
# ZcapSettings - Default Values
# ============================================================================


class TestZcapSettingsDefaults:
    """Test that ZcapSettings loads with correct default values."""

    def test_logging_defaults(self):
        settings = ZcapSettings(_env_file=None)

        assert settings.log_level == "INFO"
        assert settings.log_format == ""
        assert settings.log_file is None
        assert settings.module_log_levels == ""

    def test_resolver_defaults(self):
        settings = ZcapSettings(_env_file=None)

        assert settings.cache_max_size == 1000
        assert settings.resolver_cache_ttl_seconds == 300.0
        assert settings.resolver_timeout_seconds == 10.0
        assert settings.resolver_base_url is None

    def test_proof_purpose_defaults(self):
        settings = ZcapSettings(_env_file=None)

        assert settings.proof_max_clock_skew_seconds == 300.0


# ============================================================================
# Environment Overrides
# ============================================================================


class TestEnvironmentOverrides:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("ZCAPLD_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("ZCAPLD_CACHE_MAX_SIZE", "50")
        monkeypatch.setenv("ZCAPLD_RESOLVER_TIMEOUT", "2.5")
        monkeypatch.setenv("ZCAPLD_RESOLVER_BASE_URL", "https://caps.example.com")
        monkeypatch.setenv("ZCAPLD_MODULE_LOG_LEVELS", "zcapld.verifier=DEBUG")

        settings = ZcapSettings(_env_file=None)

        assert settings.log_level == "DEBUG"
        assert settings.cache_max_size == 50
        assert settings.resolver_timeout_seconds == 2.5
        assert settings.resolver_base_url == "https://caps.example.com"
        assert settings.module_log_levels == "zcapld.verifier=DEBUG"

    def test_unrelated_env_ignored(self, monkeypatch):
        monkeypatch.setenv("ZCAPLD_UNKNOWN_SETTING", "x")
        settings = ZcapSettings(_env_file=None)
        assert not hasattr(settings, "unknown_setting")


# ============================================================================
# Singleton
# ============================================================================


class TestGetConfig:
    def test_returns_singleton(self):
        assert get_config() is get_config()

    def test_clear_config_cache_reloads(self, monkeypatch):
        first = get_config()
        monkeypatch.setenv("ZCAPLD_RESOLVER_CACHE_TTL", "5")
        clear_config_cache()
        second = get_config()

        assert second is not first
        assert second.resolver_cache_ttl_seconds == 5.0
