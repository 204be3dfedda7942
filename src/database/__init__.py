"""Database module for DuckDB operations."""

from .connection import (
    DatabaseConnection,
    get_connection,
    get_memory_connection,
)
from .catalog import (
    ColumnDescriptor,
    SchemaCatalog,
    split_table_ref,
    DEFAULT_SCHEMA,
)
from .statements import (
    InsertPlan,
    MergePlan,
    DuckDBDialect,
    SqlServerDialect,
    get_dialect,
)
from .upsert import UpsertWriter

__all__ = [
    # Connection
    "DatabaseConnection",
    "get_connection",
    "get_memory_connection",
    # Catalog
    "ColumnDescriptor",
    "SchemaCatalog",
    "split_table_ref",
    "DEFAULT_SCHEMA",
    # Statements
    "InsertPlan",
    "MergePlan",
    "DuckDBDialect",
    "SqlServerDialect",
    "get_dialect",
    # Writes
    "UpsertWriter",
]
