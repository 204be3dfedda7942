"""Destination schema discovery for imports.

Reads column definitions and key columns for a destination table from
DuckDB's metadata views. Results are a snapshot: a catalog instance caches
what it has read for the lifetime of one import and never refreshes it.
"""

from typing import Optional, Dict, List, Tuple
from dataclasses import dataclass
import duckdb

from config.logging_config import get_logger
from src.errors import SchemaError

logger = get_logger("catalog")

DEFAULT_SCHEMA = "main"


@dataclass(frozen=True)
class ColumnDescriptor:
    """A destination table column."""
    name: str
    data_type: str
    nullable: bool = True
    ordinal: int = 0
    default: Optional[str] = None

    @property
    def is_identity(self) -> bool:
        """Column values are drawn from a sequence unless supplied."""
        return bool(self.default) and "nextval(" in self.default.lower()


def split_table_ref(table_ref: str) -> Tuple[str, str]:
    """
    Split a ``schema.table`` reference into its parts.

    A bare table name lands in the default schema.

    Args:
        table_ref: Qualified or bare table name

    Returns:
        Tuple of (schema, table)
    """
    schema, sep, table = table_ref.partition(".")
    if not sep:
        return DEFAULT_SCHEMA, table_ref
    return schema, table


class SchemaCatalog:
    """
    Read-only metadata queries against the destination database.

    Provides methods to:
    - List user tables
    - Fetch a table's columns in ordinal order
    - Fetch primary key and sequence-backed columns
    """

    def __init__(self, conn: duckdb.DuckDBPyConnection):
        """
        Initialize schema catalog.

        Args:
            conn: Active DuckDB connection
        """
        self.conn = conn
        self._columns_cache: Dict[str, List[ColumnDescriptor]] = {}
        self._keys_cache: Dict[str, List[str]] = {}

    def list_tables(self) -> List[str]:
        """
        Get all user tables as ``schema.table`` names.

        Returns:
            Sorted list of qualified table names

        Raises:
            SchemaError: If the metadata query fails
        """
        try:
            result = self.conn.execute("""
                SELECT table_schema || '.' || table_name
                FROM information_schema.tables
                WHERE table_type = 'BASE TABLE'
                  AND table_schema NOT IN ('information_schema', 'pg_catalog')
                ORDER BY table_schema, table_name
            """).fetchall()
        except duckdb.Error as e:
            raise SchemaError(f"Error listing tables: {e}") from e
        return [row[0] for row in result]

    def fetch_columns(self, table_ref: str) -> List[ColumnDescriptor]:
        """
        Get column definitions for a table, ordered by ordinal position.

        Args:
            table_ref: ``schema.table`` reference

        Returns:
            List of ColumnDescriptor

        Raises:
            SchemaError: If the table does not exist or metadata cannot be read
        """
        if table_ref in self._columns_cache:
            return self._columns_cache[table_ref]

        schema, table = split_table_ref(table_ref)
        try:
            rows = self.conn.execute(
                """
                SELECT column_name, data_type, is_nullable, ordinal_position, column_default
                FROM information_schema.columns
                WHERE table_schema = ? AND table_name = ?
                ORDER BY ordinal_position
                """,
                [schema, table],
            ).fetchall()
        except duckdb.Error as e:
            raise SchemaError(f"Error reading columns for {table_ref}: {e}") from e

        if not rows:
            raise SchemaError(f"Table not found: {table_ref}")

        columns = [
            ColumnDescriptor(
                name=row[0],
                data_type=row[1],
                nullable=row[2] == "YES",
                ordinal=row[3],
                default=row[4],
            )
            for row in rows
        ]
        self._columns_cache[table_ref] = columns

        logger.debug(f"Discovered schema for {table_ref}: {len(columns)} columns")
        return columns

    def fetch_key_columns(self, table_ref: str) -> List[str]:
        """
        Get the primary key columns of a table.

        Args:
            table_ref: ``schema.table`` reference

        Returns:
            Key column names in constraint order; empty if the table has no primary key

        Raises:
            SchemaError: If the table does not exist or metadata cannot be read
        """
        if table_ref in self._keys_cache:
            return self._keys_cache[table_ref]

        # Validates existence before looking at constraints
        self.fetch_columns(table_ref)

        schema, table = split_table_ref(table_ref)
        try:
            rows = self.conn.execute(
                """
                SELECT constraint_column_names
                FROM duckdb_constraints()
                WHERE schema_name = ? AND table_name = ?
                  AND constraint_type = 'PRIMARY KEY'
                """,
                [schema, table],
            ).fetchall()
        except duckdb.Error as e:
            raise SchemaError(f"Error reading key columns for {table_ref}: {e}") from e

        keys = list(rows[0][0]) if rows else []
        self._keys_cache[table_ref] = keys
        return keys

    def fetch_identity_columns(self, table_ref: str) -> List[str]:
        """
        Get columns whose values come from a sequence by default.

        Args:
            table_ref: ``schema.table`` reference

        Returns:
            Identity column names
        """
        return [c.name for c in self.fetch_columns(table_ref) if c.is_identity]

    def clear_cache(self) -> None:
        """Forget everything read so far."""
        self._columns_cache.clear()
        self._keys_cache.clear()
