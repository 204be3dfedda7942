"""Transactional batch writes into a destination table.

A batch is written in exactly one transaction. Without key columns the rows
are appended straight into the destination; with key columns they are bulk
loaded into a temporary staging table and merged. Any failure rolls the
whole batch back.
"""

import threading
import uuid
from typing import List, Optional, Sequence

import duckdb
import pandas as pd

from config.logging_config import get_logger
from src.database.statements import DuckDBDialect, InsertPlan, MergePlan
from src.errors import WriteError

logger = get_logger("upsert")

DEFAULT_BATCH_TIMEOUT = 300.0


class _DeadlinePassed(Exception):
    """The batch timer fired before the next statement was issued."""

    def __init__(self, statement: str):
        super().__init__(f"deadline passed before: {statement.split(None, 1)[0]}")


class UpsertWriter:
    """
    Write coerced row batches into one destination table.

    The writer is shared by all workers; every ``write`` call opens its own
    cursor on the shared connection, so calls may run concurrently.
    """

    def __init__(
        self,
        connection,
        table: str,
        columns: Sequence[str],
        key_columns: Optional[Sequence[str]] = None,
        has_identity: bool = False,
        timeout: float = DEFAULT_BATCH_TIMEOUT,
        dialect=None,
    ):
        """
        Initialize the writer.

        Args:
            connection: DatabaseConnection (or anything with ``cursor()``).
            table: Destination ``schema.table`` reference.
            columns: Destination columns, in the order values appear in each row.
            key_columns: Key columns; empty or None selects insert-only mode.
            has_identity: Explicit values are written to an identity key column.
            timeout: Seconds a single batch may take before it is interrupted.
            dialect: Statement dialect. Defaults to DuckDB.
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.connection = connection
        self.table = table
        self.columns = list(columns)
        self.key_columns = list(key_columns or [])
        self.has_identity = has_identity
        self.timeout = timeout
        self.dialect = dialect or DuckDBDialect()

    @property
    def mode(self) -> str:
        return "upsert" if self.key_columns else "insert"

    def write(self, rows: List[list], batch: Optional[int] = None) -> int:
        """
        Write one batch as one transaction.

        Args:
            rows: Typed row values, one list per row, in ``columns`` order.
            batch: Batch sequence number, for diagnostics.

        Returns:
            Number of rows written.

        Raises:
            WriteError: If any step fails; nothing from the batch is committed.
        """
        if not rows:
            return 0

        frame = pd.DataFrame(rows, columns=self.columns, dtype=object)
        token = uuid.uuid4().hex[:12]
        source_view = f"_tablesync_rows_{token}"

        cursor = self.connection.cursor()
        timed_out = threading.Event()

        def interrupt():
            timed_out.set()
            try:
                cursor.interrupt()
            except duckdb.Error as e:
                logger.debug(f"Interrupt of batch {batch} had no effect: {e}")

        def execute(statement: str) -> None:
            # An interrupt that lands between statements is not seen by DuckDB
            if timed_out.is_set():
                raise _DeadlinePassed(statement)
            cursor.execute(statement)

        timer = threading.Timer(self.timeout, interrupt)
        timer.daemon = True
        timer.start()
        try:
            try:
                cursor.register(source_view, frame)
                execute("BEGIN TRANSACTION")
            except (duckdb.Error, _DeadlinePassed) as e:
                raise self._failure(e, timed_out, len(rows), batch, "could not start transaction")
            try:
                if self.key_columns:
                    self._upsert_via_staging(execute, source_view, token)
                else:
                    self._insert_direct(execute, source_view)
                execute("COMMIT")
            except (duckdb.Error, _DeadlinePassed) as e:
                self._rollback(cursor, batch)
                context = f"{self.mode} of {len(rows)} rows failed"
                raise self._failure(e, timed_out, len(rows), batch, context)
        finally:
            timer.cancel()
            cursor.close()

        logger.debug(f"Batch {batch}: {self.mode} of {len(rows)} rows into {self.table}")
        return len(rows)

    def _failure(
        self, error, timed_out, row_count: int, batch: Optional[int], context: str
    ) -> WriteError:
        if timed_out.is_set():
            failure = WriteError(f"timed out after {self.timeout:g}s writing {row_count} rows", batch)
        else:
            failure = WriteError(f"{context}: {error}", batch)
        failure.__cause__ = error
        return failure

    def _insert_direct(self, execute, source_view: str) -> None:
        plan = InsertPlan(table=self.table, source=source_view, columns=tuple(self.columns))
        execute(self.dialect.render_insert(plan))

    def _upsert_via_staging(self, execute, source_view: str, token: str) -> None:
        staging = self.dialect.staging_name(token)

        execute(self.dialect.create_staging(staging, self.table, self.columns))
        execute(
            self.dialect.render_insert(
                InsertPlan(table=staging, source=source_view, columns=tuple(self.columns))
            )
        )

        if self.has_identity:
            for statement in self.dialect.identity_insert(self.table, True):
                execute(statement)

        plan = MergePlan.build(self.table, staging, self.columns, self.key_columns)
        for statement in self.dialect.render_merge(plan):
            execute(statement)

        if self.has_identity:
            for statement in self.dialect.identity_insert(self.table, False):
                execute(statement)

        execute(self.dialect.drop_staging(staging))

    def _rollback(self, cursor, batch: Optional[int]) -> None:
        try:
            cursor.execute("ROLLBACK")
            logger.debug(f"Rolled back batch {batch} for {self.table}")
        except duckdb.Error as rollback_error:
            # The cursor is closed right after; the transaction dies with it
            logger.error(f"Failed to rollback batch {batch}: {rollback_error}")
