"""Configuration system for feedsync."""

import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

DEFAULT_USER_AGENT = "Feedsync/0.1.0"


class NetworkConfig(BaseModel):
    """Network configuration."""

    timeout: float = Field(
        default=30.0, ge=1.0, description="Request timeout in seconds"
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT, description="User-Agent header for requests"
    )
    max_items: int = Field(
        default=-1, description="Max items kept per feed (-1 for unlimited)"
    )


class RetryConfig(BaseModel):
    """Retry and backoff configuration for feed fetches."""

    max_attempts: int = Field(default=3, ge=1, le=10, description="Total attempts")
    initial_delay: float = Field(
        default=1.0, ge=0.0, description="Delay before the second attempt (seconds)"
    )
    max_delay: float = Field(
        default=10.0, ge=0.0, description="Upper bound on any single delay (seconds)"
    )
    multiplier: float = Field(
        default=2.0, ge=1.0, description="Backoff multiplier between attempts"
    )


class CacheConfig(BaseModel):
    """Feed cache configuration."""

    enabled: bool = Field(default=True, description="Serve fresh entries from cache")
    ttl_seconds: int = Field(default=3600, ge=0, description="Entry time-to-live")
    backend: Literal["memory", "sqlite", "file"] = Field(
        default="sqlite", description="Cache storage backend"
    )
    path: str = Field(
        default="", description="Custom cache location (database file or directory)"
    )


class SyncConfig(BaseModel):
    """Bulk synchronization configuration."""

    interval_seconds: int = Field(
        default=3600, ge=60, description="Minimum age before a feed is re-synced"
    )
    concurrency: int = Field(
        default=3, ge=1, le=20, description="Max feeds synced at the same time"
    )


class Config(BaseModel):
    """Complete application configuration."""

    network: NetworkConfig = Field(default_factory=NetworkConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)


def get_config_path() -> Path:
    """Get the configuration file path."""
    return Path.home() / ".config" / "feedsync" / "config.toml"


def get_data_path() -> Path:
    """Get the data directory path."""
    xdg_data = Path.home() / ".local" / "share"
    return xdg_data / "feedsync"


def get_cache_path(config: CacheConfig) -> Path:
    """Resolve where the cache backend keeps its data.

    Args:
        config: Cache configuration.

    Returns:
        The configured path, or a default inside the data directory.
    """
    if config.path:
        return Path(config.path).expanduser()
    if config.backend == "file":
        return get_data_path() / "cache"
    return get_data_path() / "cache.db"


def get_default_config_toml() -> str:
    """Generate the default configuration as TOML."""
    return f"""# Feedsync Configuration
# This file is auto-generated with default values.
# Uncomment and modify settings as needed.

[network]
timeout = 30.0
user_agent = "{DEFAULT_USER_AGENT}"
max_items = -1

[retry]
max_attempts = 3
initial_delay = 1.0
max_delay = 10.0
multiplier = 2.0

[cache]
enabled = true
ttl_seconds = 3600
backend = "sqlite"  # or "memory", "file"
path = ""

[sync]
interval_seconds = 3600
concurrency = 3
"""


def load_config(path: Path | None = None) -> Config:
    """Load configuration from file.

    Args:
        path: Path to config file. If None, uses default location.

    Returns:
        Loaded configuration, with defaults for missing values.
    """
    if path is None:
        path = get_config_path()

    if not path.exists():
        # Create default config file
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(get_default_config_toml())
        return Config()

    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
        return _parse_config(data)
    except (tomllib.TOMLDecodeError, ValueError):
        # Return defaults on parse error
        return Config()


def _parse_config(data: dict[str, Any]) -> Config:
    """Parse configuration from dictionary.

    Args:
        data: Dictionary of configuration data from TOML.

    Returns:
        Parsed Config object with all sections populated.
    """
    return Config(
        network=NetworkConfig(**data.get("network", {})),
        retry=RetryConfig(**data.get("retry", {})),
        cache=CacheConfig(**data.get("cache", {})),
        sync=SyncConfig(**data.get("sync", {})),
    )


# Global configuration instance (lazy loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config(path: Path | None = None) -> Config:
    """Reload the global configuration."""
    global _config
    _config = load_config(path)
    return _config
