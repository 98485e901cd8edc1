"""Configuration management for the Oracle MCP engine.

All settings are declared with pydantic-settings so they can be loaded from
environment variables (or a ``.env`` file) with validation and type safety.
"""

from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ora_mcp.models.errors import ConfigurationError, ErrorCode


def _split_identifiers(value: str | list[str] | tuple[str, ...] | None) -> list[str]:
    """Parse a comma separated string or list into upper-case identifiers."""
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else list(value)
    return [item.strip().upper() for item in items if item and item.strip()]


class ConnectionConfig(BaseSettings):
    """Oracle connection parameters.

    Immutable once created. The password is held as a ``SecretStr`` and is
    never rendered by ``repr`` or ``safe_dsn``.
    """

    model_config = SettingsConfigDict(env_prefix="ORACLE_", frozen=True, extra="ignore")

    host: str = Field(..., min_length=1, description="Database host")
    port: int = Field(default=1521, ge=1, le=65535, description="Listener port")
    service_name: str = Field(..., min_length=1, description="Oracle service name")
    user: str = Field(..., min_length=1, description="Database user")
    password: SecretStr = Field(..., description="Database password")

    @property
    def dsn(self) -> str:
        """Easy Connect string ``host:port/service``."""
        return f"{self.host}:{self.port}/{self.service_name}"

    @property
    def safe_dsn(self) -> str:
        """Connection description safe for logging."""
        return f"{self.user}@{self.host}:{self.port}/{self.service_name}"


class PoolConfig(BaseSettings):
    """Connection pool sizing and timeouts."""

    model_config = SettingsConfigDict(env_prefix="ORACLE_POOL_", frozen=True)

    min_size: int = Field(default=1, ge=0, le=100, description="Minimum open connections")
    max_size: int = Field(default=4, ge=1, le=100, description="Maximum open connections")
    increment: int = Field(default=1, ge=1, le=20, description="Connections opened per growth step")
    idle_timeout: int = Field(
        default=60, ge=0, le=3600, description="Seconds before idle connections are closed"
    )
    ping_interval: int = Field(
        default=60, ge=-1, le=3600, description="Seconds an idle connection may sit before a ping"
    )
    queue_timeout: float = Field(
        default=60.0, gt=0.0, le=600.0, description="Maximum seconds to wait for a checkout"
    )
    connect_timeout: float = Field(
        default=20.0, gt=0.0, le=600.0, description="TCP connect timeout in seconds"
    )

    @model_validator(mode="after")
    def check_bounds(self) -> "PoolConfig":
        if self.max_size < self.min_size:
            raise ValueError("max_size must be greater than or equal to min_size")
        return self


class SecurityConfig(BaseSettings):
    """Table whitelist, row ceiling, LOB truncation and DML policy."""

    model_config = SettingsConfigDict(env_prefix="ORACLE_", frozen=True, extra="ignore")

    table_whitelist: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Allowed tables (comma separated). Empty means every table is allowed.",
    )
    max_rows: int = Field(default=1000, ge=1, le=100000, description="Hard row ceiling")
    default_limit: int = Field(default=100, ge=1, description="Row limit when none is requested")
    clob_max_chars: int = Field(default=4000, ge=1, description="CLOB truncation length")
    blob_max_bytes: int = Field(default=1024, ge=1, description="BLOB truncation length")
    dml_allowed_verbs: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["INSERT", "UPDATE"],
        description="Statements a DML call may start with",
    )
    dml_blacklist_keywords: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["DELETE", "TRUNCATE", "DROP", "ALTER", "CREATE", "GRANT", "REVOKE"],
        description="Keywords that may not appear anywhere in a DML call",
    )

    @field_validator(
        "table_whitelist", "dml_allowed_verbs", "dml_blacklist_keywords", mode="before"
    )
    @classmethod
    def parse_comma_separated_list(cls, v: str | list[str] | None) -> list[str]:
        """Parse comma-separated string or list, normalized to upper-case."""
        return _split_identifiers(v)


class ObservabilityConfig(BaseSettings):
    """Logging and metrics configuration."""

    model_config = SettingsConfigDict(env_prefix="OBSERVABILITY_")

    metrics_enabled: bool = Field(default=True, description="Record Prometheus metrics")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_format: Literal["json", "text"] = Field(default="text", description="Log format")


class Settings(BaseSettings):
    """Process-wide settings aggregating every config section.

    Connection parameters are not part of it: they are supplied per
    connect call (see ``parse_connection_config``) or loaded on demand
    with ``load_connection_config``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    pool: PoolConfig = Field(default_factory=PoolConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


def _configuration_error(exc: ValidationError) -> ConfigurationError:
    """Convert a pydantic validation failure into a configuration error."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ())) or None
    if first.get("type") == "missing":
        return ConfigurationError(
            f"Missing required connection parameter: {field}",
            code=ErrorCode.MISSING_REQUIRED_PARAM,
            details={"field": field},
        )
    return ConfigurationError(
        f"Invalid connection parameter {field}: {first.get('msg', 'invalid value')}",
        code=ErrorCode.CONFIG_PARSE_ERROR,
        details={"field": field},
    )


def parse_connection_config(args: Mapping[str, Any]) -> ConnectionConfig:
    """Build a ConnectionConfig from a flat argument object.

    Both ``service_name`` and ``serviceName`` spellings are accepted.

    Raises:
        ConfigurationError: If a field is missing or invalid.
    """
    data = dict(args)
    if "serviceName" in data and "service_name" not in data:
        data["service_name"] = data.pop("serviceName")
    try:
        return ConnectionConfig.model_validate(data)
    except ValidationError as e:
        raise _configuration_error(e) from e


def load_connection_config() -> ConnectionConfig:
    """Build a ConnectionConfig from ``ORACLE_*`` environment variables.

    Raises:
        ConfigurationError: If a variable is missing or invalid.
    """
    try:
        return ConnectionConfig()  # type: ignore[call-arg]
    except ValidationError as e:
        raise _configuration_error(e) from e


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance.

    Returns:
        Settings: The global settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset global settings instance. Useful for testing."""
    global _settings
    _settings = None
