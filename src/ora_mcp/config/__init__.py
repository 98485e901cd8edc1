"""Configuration management module."""

from ora_mcp.config.settings import (
    ConnectionConfig,
    ObservabilityConfig,
    PoolConfig,
    SecurityConfig,
    Settings,
    get_settings,
    load_connection_config,
    parse_connection_config,
    reset_settings,
)

__all__ = [
    "ConnectionConfig",
    "ObservabilityConfig",
    "PoolConfig",
    "SecurityConfig",
    "Settings",
    "get_settings",
    "load_connection_config",
    "parse_connection_config",
    "reset_settings",
]
