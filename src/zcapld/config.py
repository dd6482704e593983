# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Core configuration - centralized config for the zcapld package.

All environment-based configuration flows through this module. Components
take explicit constructor arguments and only fall back to these settings
for their defaults.

Usage:
    from zcapld.config import get_config
    config = get_config()

    ttl = config.resolver_cache_ttl_seconds
    log_level = config.log_level
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ZcapSettings(BaseSettings):
    """Configuration settings for the capability verifier.

    Every setting is read from a ``ZCAPLD_`` environment variable or a
    ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="ZCAPLD_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="ZCAPLD_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="ZCAPLD_LOG_FILE",
    )
    module_log_levels: str = Field(
        default="",
        description="Per-module thresholds, e.g. 'zcapld.verifier=DEBUG,zcapld.resolver=WARNING'",
        validation_alias="ZCAPLD_MODULE_LOG_LEVELS",
    )

    # ==========================================================================
    # RESOLVER SETTINGS
    # ==========================================================================

    cache_max_size: int = Field(
        default=1000,
        description="Maximum number of capabilities held by the caching resolver",
        validation_alias="ZCAPLD_CACHE_MAX_SIZE",
    )
    resolver_cache_ttl_seconds: float = Field(
        default=300.0,
        description="Seconds a resolved capability stays cached",
        validation_alias="ZCAPLD_RESOLVER_CACHE_TTL",
    )
    resolver_timeout_seconds: float = Field(
        default=10.0,
        description="HTTP timeout for remote capability resolution",
        validation_alias="ZCAPLD_RESOLVER_TIMEOUT",
    )
    resolver_base_url: str | None = Field(
        default=None,
        description="Base URL used to fetch capabilities whose id is not an http(s) URL",
        validation_alias="ZCAPLD_RESOLVER_BASE_URL",
    )

    # ==========================================================================
    # PROOF PURPOSE SETTINGS
    # ==========================================================================

    proof_max_clock_skew_seconds: float = Field(
        default=300.0,
        description="Allowed distance between a proof's 'created' time and the expected time",
        validation_alias="ZCAPLD_PROOF_MAX_CLOCK_SKEW",
    )


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: ZcapSettings | None = None


def get_config() -> ZcapSettings:
    """Get the global configuration instance.

    Returns:
        The singleton ZcapSettings instance.
    """
    global _config
    if _config is None:
        _config = ZcapSettings()
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
