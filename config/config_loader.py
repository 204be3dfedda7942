"""YAML Configuration Loader for tablesync.

Loads and caches optional overrides from ``tablesync.yaml`` with fallback to
the environment-driven defaults in ``config.settings``.
"""

from pathlib import Path
from typing import Any, Dict, Optional
from functools import lru_cache
import yaml

# Get config directory
CONFIG_DIR = Path(__file__).parent

OVERRIDES_FILE = "tablesync.yaml"


class ConfigurationError(Exception):
    """Raised when configuration loading or access fails."""

    pass


def _load_yaml_file(filepath: Path) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        filepath: Path to the YAML file

    Returns:
        Parsed YAML content as dictionary

    Raises:
        ConfigurationError: If file cannot be loaded
    """
    if not filepath.exists():
        raise ConfigurationError(f"Configuration file not found: {filepath}")

    try:
        with open(filepath, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Error parsing {filepath.name}: {e}")
    except IOError as e:
        raise ConfigurationError(f"Error reading {filepath.name}: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"{filepath.name} must contain a mapping at top level")
    return data


@lru_cache(maxsize=1)
def load_overrides(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load tablesync.yaml overrides.

    A missing file is not an error; it yields no overrides.

    Args:
        path: Explicit file path. Defaults to ``config/tablesync.yaml``.

    Returns:
        Override dictionary (possibly empty).
    """
    filepath = path or CONFIG_DIR / OVERRIDES_FILE
    if not filepath.exists():
        return {}
    return _load_yaml_file(filepath)


def clear_config_cache() -> None:
    """Clear all cached configuration data."""
    load_overrides.cache_clear()


def apply_overrides(cfg, overrides: Dict[str, Any]) -> None:
    """
    Apply an override mapping onto a Config instance in place.

    Recognized sections are ``imports`` (batch_size, workers, batch_timeout,
    delimiter, input_dir, processed_dir), ``database`` (memory_limit,
    threads) and top-level ``log_level``.

    Raises:
        ConfigurationError: On unknown keys or invalid values.
    """
    imports = overrides.get("imports") or {}
    for key, value in imports.items():
        if not hasattr(cfg.imports, key):
            raise ConfigurationError(f"Unknown imports setting: {key}")
        current = getattr(cfg.imports, key)
        try:
            setattr(cfg.imports, key, type(current)(value))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid value for imports.{key}: {value!r}") from e

    database = overrides.get("database") or {}
    for key in ("memory_limit", "threads"):
        if key in database:
            current = getattr(cfg.database, key)
            try:
                setattr(cfg.database, key, type(current)(database[key]))
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"Invalid value for database.{key}: {database[key]!r}"
                ) from e

    if "log_level" in overrides:
        cfg.app.log_level = str(overrides["log_level"]).upper()
