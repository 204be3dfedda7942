"""DuckDB connection management for tablesync."""

import duckdb
from pathlib import Path
from typing import Optional
from contextlib import contextmanager
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
import sys

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import config
from config.logging_config import get_logger

logger = get_logger("database")

MEMORY_DATABASE = ":memory:"


class DatabaseConnection:
    """
    Manages a DuckDB connection shared by the import workers.

    DuckDB connections are not safe to use from several threads at once, so
    every worker asks for its own cursor via ``cursor()``. Cursors opened on
    the same connection see the same database, including in-memory ones.
    """

    def __init__(self, db_path: Optional[Path] = None, read_only: bool = False):
        """
        Initialize database connection manager.

        Args:
            db_path: Path to database file, or ":memory:". Defaults to config setting.
            read_only: Open database in read-only mode.
        """
        self.db_path = db_path or config.database.path
        self.read_only = read_only
        self._connection: Optional[duckdb.DuckDBPyConnection] = None

    @property
    def is_memory(self) -> bool:
        return str(self.db_path) == MEMORY_DATABASE

    def connect(self) -> duckdb.DuckDBPyConnection:
        """
        Establish connection to the database.

        Returns:
            DuckDB connection object.
        """
        if self._connection is not None:
            return self._connection

        if not self.is_memory:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._connection = self._open()
        self._configure_connection()

        logger.info(f"Connected to database: {self.db_path}")
        return self._connection

    # Another process holding the file lock surfaces as an IOException
    @retry(
        retry=retry_if_exception_type(duckdb.IOException),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    def _open(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(str(self.db_path), read_only=self.read_only)

    def _configure_connection(self) -> None:
        """Configure connection settings for bulk loading."""
        if self._connection is None:
            return

        self._connection.execute(
            f"SET memory_limit = '{config.database.memory_limit}'"
        )

        # Batches are independent units; their relative order does not matter
        self._connection.execute("SET preserve_insertion_order = false")

        # Type object columns of loaded DataFrames from a full batch, not a sample
        self._connection.execute(
            f"SET pandas_analyze_sample = {int(config.database.pandas_analyze_sample)}"
        )

        if config.database.threads > 0:
            self._connection.execute(f"SET threads = {config.database.threads}")

    def cursor(self) -> duckdb.DuckDBPyConnection:
        """
        Open a new cursor for use by a single thread.

        Returns:
            A DuckDB connection sharing this connection's database.
        """
        return self.connection.cursor()

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        """Get the current connection, establishing if needed."""
        if self._connection is None:
            return self.connect()
        return self._connection

    def execute(self, query: str, parameters: Optional[list] = None):
        """
        Execute a SQL query on the shared connection.

        Args:
            query: SQL query string.
            parameters: Optional query parameters.

        Returns:
            Query result.
        """
        conn = self.connection
        if parameters:
            return conn.execute(query, parameters)
        return conn.execute(query)

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False


@contextmanager
def get_connection(db_path: Optional[Path] = None, read_only: bool = False):
    """
    Context manager for database connections.

    Args:
        db_path: Path to database file.
        read_only: Open in read-only mode.

    Yields:
        DatabaseConnection with an open connection.

    Example:
        with get_connection() as db:
            tables = SchemaCatalog(db.connection).list_tables()
    """
    db = DatabaseConnection(db_path, read_only)
    try:
        db.connect()
        yield db
    finally:
        db.close()


def get_memory_connection() -> DatabaseConnection:
    """
    Get an in-memory database connection for testing.

    Returns:
        Connected in-memory DatabaseConnection.
    """
    db = DatabaseConnection(Path(MEMORY_DATABASE))
    db.connect()
    return db
