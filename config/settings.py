"""Application settings and configuration."""

from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

# --target value -> env var prefix
TARGET_ENV_PREFIXES = {
    "prod": "PROD",
    "test": "TEST",
}


@dataclass
class DatabaseConfig:
    """Database configuration settings."""

    path: Path = field(
        default_factory=lambda: Path(
            os.getenv("TABLESYNC_DB_PATH", str(PROJECT_ROOT / "data" / "tablesync.duckdb"))
        )
    )
    read_only: bool = False
    memory_limit: str = field(
        default_factory=lambda: os.getenv("TABLESYNC_MEMORY_LIMIT", "4GB")
    )
    threads: int = -1  # Use all available threads
    # Rows DuckDB samples when typing object columns of a loaded DataFrame
    pandas_analyze_sample: int = 100000


@dataclass
class ImportDefaults:
    """Defaults for batch imports, overridable per run."""

    batch_size: int = field(
        default_factory=lambda: int(os.getenv("TABLESYNC_BATCH_SIZE", "1000"))
    )
    workers: int = field(
        default_factory=lambda: int(os.getenv("TABLESYNC_WORKERS", "4"))
    )
    batch_timeout: float = field(
        default_factory=lambda: float(os.getenv("TABLESYNC_BATCH_TIMEOUT", "300"))
    )
    delimiter: str = ","
    input_dir: Path = field(
        default_factory=lambda: Path(os.getenv("TABLESYNC_INPUT_DIR", "csv_input"))
    )
    processed_dir: Path = field(
        default_factory=lambda: Path(os.getenv("TABLESYNC_PROCESSED_DIR", "csv_processed"))
    )


@dataclass
class AppConfig:
    """Application configuration settings."""

    name: str = field(default_factory=lambda: os.getenv("APP_NAME", "tablesync"))
    version: str = field(default_factory=lambda: os.getenv("APP_VERSION", "1.0.0"))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


@dataclass
class Config:
    """Main configuration container."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    imports: ImportDefaults = field(default_factory=ImportDefaults)
    app: AppConfig = field(default_factory=AppConfig)


def database_path_for_target(target: Optional[str]) -> Path:
    """
    Resolve the database path for a named target.

    The path is read from ``{PREFIX}_DB_PATH`` (e.g. ``PROD_DB_PATH``).
    With no target, the default configured path is returned.

    Args:
        target: Target name ("prod" or "test"), or None.

    Returns:
        Path to the DuckDB database file.

    Raises:
        ConfigurationError: If the target is unknown or its variable is unset.
    """
    from config.config_loader import ConfigurationError

    if target is None:
        return config.database.path

    prefix = TARGET_ENV_PREFIXES.get(target.lower())
    if prefix is None:
        valid = ", ".join(sorted(TARGET_ENV_PREFIXES))
        raise ConfigurationError(f"Unknown target {target!r} (valid: {valid})")

    value = os.getenv(f"{prefix}_DB_PATH")
    if not value:
        raise ConfigurationError(f"Missing required env var: {prefix}_DB_PATH")
    return Path(value)


# Global config instance
config = Config()
