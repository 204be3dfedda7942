"""Configuration module for tablesync."""

from .settings import (
    config,
    Config,
    DatabaseConfig,
    ImportDefaults,
    AppConfig,
    TARGET_ENV_PREFIXES,
    database_path_for_target,
)
from .config_loader import (
    ConfigurationError,
    load_overrides,
    apply_overrides,
    clear_config_cache,
)

__all__ = [
    # Settings
    "config",
    "Config",
    "DatabaseConfig",
    "ImportDefaults",
    "AppConfig",
    "TARGET_ENV_PREFIXES",
    "database_path_for_target",
    # YAML overrides
    "ConfigurationError",
    "load_overrides",
    "apply_overrides",
    "clear_config_cache",
]
