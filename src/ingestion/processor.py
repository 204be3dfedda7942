"""Import every matching file in an input directory, one after another.

Files are resolved to tables by name: ``SHIPPING_CONTAINER_inserts_20260211_170255.csv``
loads into ``main.SHIPPING_CONTAINER``. Files whose import finishes with no
failed batch are moved to the processed directory.
"""

import fnmatch
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from config.logging_config import get_logger
from src.database.catalog import DEFAULT_SCHEMA, SchemaCatalog
from src.errors import TableSyncError
from src.ingestion.importer import BulkImporter, ImportConfig, ImportSummary

logger = get_logger("processor")

TABLE_NAME_MARKER = "_inserts_"


def glob_case_insensitive(directory: Path, pattern: str) -> List[Path]:
    """
    Case-insensitive, non-recursive glob.

    Args:
        directory: Directory to search in.
        pattern: Glob pattern (e.g., "*.csv").

    Returns:
        List of matching Path objects, sorted alphabetically.

    Raises:
        OSError: If the directory cannot be read.
    """
    regex = re.compile(fnmatch.translate(pattern), re.IGNORECASE)
    return sorted(
        item for item in Path(directory).iterdir()
        if item.is_file() and regex.match(item.name)
    )


def scan_directory(directory: Path) -> List[Path]:
    """All ``.csv`` files directly inside ``directory``."""
    return glob_case_insensitive(directory, "*.csv")


def extract_table_name(filename: str) -> Optional[str]:
    """
    Get the table part of a file name like ``TABLE_inserts_20260211_170255.csv``.

    Returns:
        Everything before ``_inserts_`` (matched case-insensitively), or None
        when the marker is absent or nothing precedes it.
    """
    stem = Path(filename).stem
    index = stem.lower().find(TABLE_NAME_MARKER)
    if index <= 0:
        return None
    return stem[:index]


@dataclass
class FileMatch:
    """A source file paired with its destination table."""
    path: Path
    table: str

    @property
    def filename(self) -> str:
        return self.path.name


def match_files_to_tables(
    files: List[Path],
    tables: List[str],
    schema: str = DEFAULT_SCHEMA,
) -> Tuple[List[FileMatch], List[str]]:
    """
    Resolve each file to an existing table in ``schema``.

    Args:
        files: Candidate source files.
        tables: Existing ``schema.table`` names.
        schema: Schema the extracted table names belong to.

    Returns:
        Tuple of (matches, descriptions of unmatched files).
    """
    lookup: Dict[str, str] = {t.lower(): t for t in tables}
    matched: List[FileMatch] = []
    unmatched: List[str] = []

    for path in files:
        table_part = extract_table_name(path.name)
        if table_part is None:
            unmatched.append(path.name)
            continue
        candidate = f"{schema}.{table_part}"
        full_name = lookup.get(candidate.lower())
        if full_name is None:
            unmatched.append(f"{path.name} (no table: {candidate})")
            continue
        matched.append(FileMatch(path=path, table=full_name))

    return matched, unmatched


@dataclass
class ProcessSummary:
    """Outcome of processing a directory."""
    files_found: int = 0
    matched: List[FileMatch] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    moved: List[str] = field(default_factory=list)
    total_rows: int = 0
    imports: List[ImportSummary] = field(default_factory=list)


class DirectoryProcessor:
    """Import all table-named files in a directory and archive the successes."""

    def __init__(
        self,
        connection,
        batch_size: int,
        workers: int,
        batch_timeout: float,
        schema: str = DEFAULT_SCHEMA,
        progress_factory: Optional[Callable[[FileMatch], Callable[[int], None]]] = None,
    ):
        """
        Initialize the processor.

        Args:
            connection: DatabaseConnection used for every import.
            batch_size: Rows per batch.
            workers: Worker threads per import.
            batch_timeout: Seconds allowed per batch.
            schema: Schema that file-derived table names resolve in.
            progress_factory: Builds a progress sink for each file.

        Raises:
            ValueError: If a batch setting is out of range.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if workers < 1:
            raise ValueError("workers must be at least 1")
        if batch_timeout <= 0:
            raise ValueError("batch_timeout must be positive")
        self.connection = connection
        self.batch_size = batch_size
        self.workers = workers
        self.batch_timeout = batch_timeout
        self.schema = schema
        self.progress_factory = progress_factory

    def plan(self, input_dir: Path) -> ProcessSummary:
        """Scan ``input_dir`` and resolve files to tables without importing."""
        files = scan_directory(input_dir)
        tables = SchemaCatalog(self.connection.connection).list_tables()
        matched, unmatched = match_files_to_tables(files, tables, self.schema)
        return ProcessSummary(files_found=len(files), matched=matched, unmatched=unmatched)

    def run(self, input_dir: Path, processed_dir: Path) -> ProcessSummary:
        """
        Import every matched file in ``input_dir`` sequentially.

        A failure in one file is recorded and the next file is processed.

        Returns:
            ProcessSummary
        """
        summary = self.plan(input_dir)
        logger.info(
            f"Found {summary.files_found} file(s) in {input_dir}: "
            f"{len(summary.matched)} matched, {len(summary.unmatched)} unmatched"
        )
        for description in summary.unmatched:
            logger.warning(f"Unmatched: {description}")

        if not summary.matched:
            return summary

        processed_dir = Path(processed_dir)
        processed_dir.mkdir(parents=True, exist_ok=True)

        for index, match in enumerate(summary.matched, start=1):
            logger.info(
                f"[{index}/{len(summary.matched)}] Processing {match.filename} -> {match.table}"
            )
            progress = self.progress_factory(match) if self.progress_factory else None
            importer = BulkImporter(self.connection, progress=progress)
            import_config = ImportConfig(
                table=match.table,
                batch_size=self.batch_size,
                workers=self.workers,
                batch_timeout=self.batch_timeout,
            )

            try:
                result = importer.run(match.path, import_config)
            except (TableSyncError, OSError) as e:
                logger.error(f"{match.filename}: {e}")
                summary.failed[match.filename] = str(e)
                continue

            summary.imports.append(result)
            summary.total_rows += result.rows_inserted
            if not result.succeeded:
                summary.failed[match.filename] = (
                    f"{result.batches_failed} batch errors during import"
                    if result.batches_failed else result.status
                )
                continue

            summary.succeeded.append(match.filename)
            self._archive(match, processed_dir, summary)

        logger.info(
            f"Processed {len(summary.matched)} file(s): {len(summary.succeeded)} succeeded, "
            f"{len(summary.failed)} failed, {summary.total_rows:,} rows"
        )
        return summary

    def _archive(self, match: FileMatch, processed_dir: Path, summary: ProcessSummary) -> None:
        destination = processed_dir / match.filename
        try:
            shutil.move(str(match.path), str(destination))
        except OSError as e:
            logger.warning(f"Imported {match.filename} but failed to move it: {e}")
            return
        summary.moved.append(match.filename)
        logger.info(f"Moved {match.filename} -> {processed_dir}")
