"""SQL statement construction for batch writes.

Statements are described as plain data first (``InsertPlan``, ``MergePlan``)
and rendered by a dialect. Column names come from source file headers, so
every identifier goes through the dialect's ``quote_ident``; nothing else in
the package formats identifiers into SQL.
"""

from dataclasses import dataclass, field
from typing import List, Sequence, Tuple


def _ordered_unique(names: Sequence[str]) -> Tuple[str, ...]:
    seen = set()
    result = []
    for name in names:
        key = name.upper()
        if key not in seen:
            seen.add(key)
            result.append(name)
    return tuple(result)


@dataclass(frozen=True)
class InsertPlan:
    """Append rows from a source relation into the destination."""
    table: str
    source: str
    columns: Tuple[str, ...]


@dataclass(frozen=True)
class MergePlan:
    """
    Upsert rows from a staging table into the destination.

    Staging rows whose key columns match a destination row update every
    non-key column; the rest are inserted.
    """
    table: str
    staging: str
    key_columns: Tuple[str, ...]
    insert_columns: Tuple[str, ...]
    update_columns: Tuple[str, ...] = field(default=())

    @classmethod
    def build(
        cls,
        table: str,
        staging: str,
        columns: Sequence[str],
        key_columns: Sequence[str],
    ) -> "MergePlan":
        """
        Derive a merge plan from the written columns and the key columns.

        Key matching is case-insensitive, as DuckDB identifiers are.
        """
        if not key_columns:
            raise ValueError("A merge plan needs at least one key column")
        keys = {k.upper() for k in key_columns}
        insert_columns = _ordered_unique(columns)
        return cls(
            table=table,
            staging=staging,
            key_columns=tuple(key_columns),
            insert_columns=insert_columns,
            update_columns=tuple(c for c in insert_columns if c.upper() not in keys),
        )


class DuckDBDialect:
    """Renders plans for DuckDB."""

    name = "duckdb"

    def quote_ident(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def quote_table(self, table_ref: str) -> str:
        """Quote a ``schema.table`` reference part by part."""
        return ".".join(self.quote_ident(part) for part in table_ref.split(".", 1))

    def column_list(self, columns: Sequence[str], prefix: str = "") -> str:
        return ", ".join(prefix + self.quote_ident(c) for c in columns)

    def staging_name(self, token: str) -> str:
        return f"_tablesync_staging_{token}"

    def create_staging(self, staging: str, table: str, columns: Sequence[str]) -> str:
        """Empty, constraint-free copy of the written destination columns."""
        return (
            f"CREATE TEMP TABLE {self.quote_ident(staging)} AS "
            f"SELECT {self.column_list(columns)} FROM {self.quote_table(table)} LIMIT 0"
        )

    def drop_staging(self, staging: str) -> str:
        return f"DROP TABLE IF EXISTS {self.quote_ident(staging)}"

    def render_insert(self, plan: InsertPlan) -> str:
        cols = self.column_list(plan.columns)
        return (
            f"INSERT INTO {self.quote_table(plan.table)} ({cols}) "
            f"SELECT {cols} FROM {self.quote_ident(plan.source)}"
        )

    def identity_insert(self, table: str, enabled: bool) -> List[str]:
        # Sequence-backed columns accept explicit values as-is
        return []

    def render_merge(self, plan: MergePlan) -> List[str]:
        """
        Render a merge as an update of matched rows followed by an insert
        of the set difference.
        """
        target = self.quote_table(plan.table)
        staging = self.quote_ident(plan.staging)
        match = " AND ".join(
            f"target.{self.quote_ident(k)} = source.{self.quote_ident(k)}"
            for k in plan.key_columns
        )

        statements = []
        if plan.update_columns:
            assignments = ", ".join(
                f"{self.quote_ident(c)} = source.{self.quote_ident(c)}"
                for c in plan.update_columns
            )
            statements.append(
                f"UPDATE {target} AS target SET {assignments} "
                f"FROM {staging} AS source WHERE {match}"
            )
        statements.append(
            f"INSERT INTO {target} ({self.column_list(plan.insert_columns)}) "
            f"SELECT {self.column_list(plan.insert_columns, 'source.')} "
            f"FROM {staging} AS source "
            f"WHERE NOT EXISTS (SELECT 1 FROM {target} AS target WHERE {match})"
        )
        return statements


class SqlServerDialect(DuckDBDialect):
    """Renders plans as T-SQL (MERGE with identity insert toggles)."""

    name = "sqlserver"

    def quote_ident(self, name: str) -> str:
        return "[" + name.replace("]", "]]") + "]"

    def staging_name(self, token: str) -> str:
        return f"#tablesync_staging_{token}"

    def create_staging(self, staging: str, table: str, columns: Sequence[str]) -> str:
        return (
            f"SELECT TOP(0) {self.column_list(columns)} "
            f"INTO {self.quote_ident(staging)} FROM {self.quote_table(table)}"
        )

    def drop_staging(self, staging: str) -> str:
        return f"DROP TABLE {self.quote_ident(staging)}"

    def identity_insert(self, table: str, enabled: bool) -> List[str]:
        state = "ON" if enabled else "OFF"
        return [f"SET IDENTITY_INSERT {self.quote_table(table)} {state}"]

    def render_merge(self, plan: MergePlan) -> List[str]:
        match = " AND ".join(
            f"target.{self.quote_ident(k)} = source.{self.quote_ident(k)}"
            for k in plan.key_columns
        )
        parts = [
            f"MERGE {self.quote_table(plan.table)} AS target",
            f"USING {self.quote_ident(plan.staging)} AS source",
            f"ON ({match})",
        ]
        if plan.update_columns:
            assignments = ", ".join(
                f"target.{self.quote_ident(c)} = source.{self.quote_ident(c)}"
                for c in plan.update_columns
            )
            parts.append(f"WHEN MATCHED THEN UPDATE SET {assignments}")
        parts.append(
            f"WHEN NOT MATCHED THEN INSERT ({self.column_list(plan.insert_columns)}) "
            f"VALUES ({self.column_list(plan.insert_columns, 'source.')});"
        )
        return [" ".join(parts)]


DIALECTS = {
    DuckDBDialect.name: DuckDBDialect,
    SqlServerDialect.name: SqlServerDialect,
}


def get_dialect(name: str = "duckdb"):
    """Get a dialect instance by name."""
    try:
        return DIALECTS[name.lower()]()
    except KeyError:
        raise ValueError(f"Unknown SQL dialect: {name}") from None
