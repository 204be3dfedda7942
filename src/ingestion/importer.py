"""Import a delimited file into a DuckDB table with concurrent batch writes."""

import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence
import sys

PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import config
from config.logging_config import get_logger
from src.database.catalog import SchemaCatalog
from src.database.upsert import UpsertWriter
from src.errors import MappingError, ParseError
from src.ingestion.mapper import MapOutcome, map_columns, normalize_name
from src.ingestion.pool import Batch, BatchResult, WorkerPool
from src.ingestion.reader import CSVBatchReader

logger = get_logger("importer")

# Failure messages kept verbatim in a summary
MAX_ERROR_SAMPLES = 10


@dataclass
class ImportConfig:
    """Settings for one import run."""

    table: str
    batch_size: int = field(default_factory=lambda: config.imports.batch_size)
    workers: int = field(default_factory=lambda: config.imports.workers)
    key_columns: Optional[List[str]] = None
    has_identity: bool = False
    batch_timeout: float = field(default_factory=lambda: config.imports.batch_timeout)
    delimiter: str = field(default_factory=lambda: config.imports.delimiter)
    encoding: Optional[str] = None

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        if self.batch_timeout <= 0:
            raise ValueError("batch_timeout must be positive")


@dataclass
class ImportSummary:
    """Aggregated outcome of an import run."""

    filename: str
    table: str
    mode: str = "insert"
    columns_mapped: int = 0
    columns_skipped: List[str] = field(default_factory=list)
    batches_submitted: int = 0
    batches_succeeded: int = 0
    batches_failed: int = 0
    rows_attempted: int = 0
    rows_inserted: int = 0
    coercion_fallbacks: int = 0
    error_messages: List[str] = field(default_factory=list)
    parse_error: Optional[str] = None
    cancelled: bool = False
    duration_seconds: float = 0

    @property
    def status(self) -> str:
        if self.cancelled:
            return "cancelled"
        if self.batches_failed or self.parse_error:
            return "completed_with_errors"
        return "success"

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    @property
    def rows_per_second(self) -> float:
        if self.duration_seconds <= 0:
            return 0.0
        return self.rows_inserted / self.duration_seconds

    def record(self, result: BatchResult) -> None:
        """Fold one batch result into the totals."""
        self.rows_attempted += result.row_count
        self.coercion_fallbacks += result.coercion_fallbacks
        if result.succeeded:
            self.batches_succeeded += 1
            self.rows_inserted += result.row_count
            return
        self.batches_failed += 1
        if len(self.error_messages) < MAX_ERROR_SAMPLES:
            self.error_messages.append(str(result.failure))

    def format_lines(self) -> List[str]:
        """Human-readable summary lines."""
        lines = [
            f"File:                {self.filename}",
            f"Table:               {self.table}",
            f"Mode:                {self.mode}",
            f"Total rows inserted: {self.rows_inserted:,}",
            f"Duration:            {self.duration_seconds:.3f}s",
            f"Throughput:          {self.rows_per_second:,.0f} rows/sec",
            f"Batches:             {self.batches_succeeded} ok, {self.batches_failed} failed",
            f"Coercion fallbacks:  {self.coercion_fallbacks:,}",
            f"Status:              {self.status}",
        ]
        if self.parse_error:
            lines.append(f"Parse error:         {self.parse_error}")
        if self.error_messages:
            lines.append("First errors:")
            lines.extend(f"  - {message}" for message in self.error_messages)
        return lines


ProgressSink = Callable[[int], None]


class BulkImporter:
    """
    Import delimited files into DuckDB tables.

    Schema and mapping problems abort before anything is written. Once rows
    are flowing, failed batches are rolled back and counted while the rest
    of the file keeps loading.
    """

    def __init__(self, connection, progress: Optional[ProgressSink] = None, dialect=None):
        """
        Initialize the importer.

        Args:
            connection: DatabaseConnection shared by all workers.
            progress: Called with each finished batch's row count.
            dialect: Statement dialect passed to the writer.
        """
        self.connection = connection
        self.progress = progress
        self.dialect = dialect
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Stop reading and writing; batches in flight finish or report as cancelled."""
        logger.warning("Import cancellation requested")
        self._cancel_event.set()

    def run(self, filepath: Path, import_config: ImportConfig) -> ImportSummary:
        """
        Import one file.

        Args:
            filepath: Source file with a header row.
            import_config: Destination table and run settings.

        Returns:
            ImportSummary. Check ``status``: failed batches do not raise.

        Raises:
            SchemaError: If the destination table metadata cannot be read.
            OSError: If the file cannot be opened or has no header.
            MappingError: If source headers do not cover the table's requirements.
        """
        filepath = Path(filepath)
        table = import_config.table
        catalog = SchemaCatalog(self.connection.connection)

        columns = catalog.fetch_columns(table)
        logger.info(f"Table {table} has {len(columns)} columns")

        with CSVBatchReader.open(
            filepath,
            delimiter=import_config.delimiter,
            encoding=import_config.encoding,
        ) as reader:
            headers = reader.headers
            logger.info(f"{filepath.name} has {len(headers)} columns")

            outcome = map_columns(headers, columns)
            key_columns = self._resolve_keys(catalog, import_config, outcome)
            has_identity = self._resolve_identity(catalog, import_config, key_columns)

            writer = UpsertWriter(
                self.connection,
                table,
                outcome.destination_columns,
                key_columns=key_columns,
                has_identity=has_identity,
                timeout=import_config.batch_timeout,
                dialect=self.dialect,
            )
            summary = ImportSummary(
                filename=filepath.name,
                table=table,
                mode=writer.mode,
                columns_mapped=len(outcome.mapped),
                columns_skipped=list(outcome.skipped),
            )
            logger.info(
                f"Importing {filepath.name} into {table} ({writer.mode}, "
                f"{len(outcome.mapped)} columns matched, batch size "
                f"{import_config.batch_size}, {import_config.workers} workers)"
            )

            start_time = time.monotonic()
            self._pump(reader, writer, outcome, import_config, summary)
            summary.duration_seconds = time.monotonic() - start_time

        summary.cancelled = self._cancel_event.is_set()
        self._log_summary(summary)
        return summary

    def _resolve_keys(
        self,
        catalog: SchemaCatalog,
        import_config: ImportConfig,
        outcome: MapOutcome,
    ) -> List[str]:
        duplicates = outcome.duplicate_destinations
        if duplicates:
            raise MappingError(
                "Several source headers match the same table column: " + ", ".join(duplicates),
                outcome=outcome,
                unmatched=[],
            )

        if import_config.key_columns:
            requested = list(import_config.key_columns)
        else:
            requested = catalog.fetch_key_columns(import_config.table)

        by_name = {normalize_name(m.column.name): m.column.name for m in outcome.mapped}
        missing = [k for k in requested if normalize_name(k) not in by_name]
        if missing:
            raise MappingError(
                "Key columns have no matching source header: " + ", ".join(missing),
                outcome=outcome,
                unmatched=missing,
            )
        return [by_name[normalize_name(k)] for k in requested]

    def _resolve_identity(
        self,
        catalog: SchemaCatalog,
        import_config: ImportConfig,
        key_columns: Sequence[str],
    ) -> bool:
        if import_config.has_identity:
            return True
        identity = {normalize_name(c) for c in catalog.fetch_identity_columns(import_config.table)}
        return any(normalize_name(k) in identity for k in key_columns)

    def _pump(
        self,
        reader: CSVBatchReader,
        writer: UpsertWriter,
        outcome: MapOutcome,
        import_config: ImportConfig,
        summary: ImportSummary,
    ) -> None:
        pool = WorkerPool(
            writer,
            outcome.mapped,
            workers=import_config.workers,
            cancel_event=self._cancel_event,
        )
        pool.start()

        producer = threading.Thread(
            target=self._produce,
            args=(reader, pool, import_config.batch_size, summary),
            name="tablesync-producer",
            daemon=True,
        )
        producer.start()

        drained = False
        try:
            for result in pool.results():
                summary.record(result)
                if self.progress is not None:
                    self.progress(result.row_count)
            drained = True
        except KeyboardInterrupt:
            logger.warning("Interrupted while importing")
        finally:
            if not drained:
                # Covers errors raised by the progress sink as well as Ctrl-C.
                # Workers report the rest as cancelled; drain so they can exit
                self.cancel()
                for result in pool.results():
                    summary.record(result)
            # The reader is closed by the caller once this returns
            producer.join()

    def _produce(
        self,
        reader: CSVBatchReader,
        pool: WorkerPool,
        batch_size: int,
        summary: ImportSummary,
    ) -> None:
        sequence = 0

        def submit(rows):
            nonlocal sequence
            pool.submit(Batch(sequence=sequence, rows=rows))
            summary.batches_submitted += 1
            sequence += 1

        try:
            more = True
            while more and not self._cancel_event.is_set():
                try:
                    rows, more = reader.read_batch(batch_size)
                except ParseError as e:
                    logger.error(f"Read error in {reader.filepath.name}: {e}")
                    summary.parse_error = str(e)
                    if e.partial_rows:
                        submit(e.partial_rows)
                    break
                if rows:
                    submit(rows)
        except Exception:
            logger.exception(f"Reading {reader.filepath.name} failed")
            summary.parse_error = summary.parse_error or "reader failed unexpectedly"
        finally:
            pool.done()
        logger.debug(f"Submitted {sequence} batches from {reader.filepath.name}")

    def _log_summary(self, summary: ImportSummary) -> None:
        message = (
            f"Loaded {summary.filename}: {summary.rows_inserted:,} of "
            f"{summary.rows_attempted:,} rows in {summary.batches_succeeded} batches "
            f"({summary.batches_failed} failed, {summary.coercion_fallbacks:,} coercion "
            f"fallbacks) in {summary.duration_seconds:.1f}s"
        )
        if summary.succeeded:
            logger.info(message)
        else:
            logger.warning(f"{message} [{summary.status}]")
            for error in summary.error_messages[:3]:
                logger.warning(f"  {error}")
