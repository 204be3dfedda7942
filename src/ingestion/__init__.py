"""Data ingestion module for loading delimited files into DuckDB."""

from .reader import CSVBatchReader, count_rows, detect_encoding
from .mapper import ColumnMapping, MapOutcome, map_columns
from .coercion import CoercedValue, coerce_value, coerce_row, coerce_batch
from .pool import Batch, BatchResult, PoolState, WorkerPool
from .importer import BulkImporter, ImportConfig, ImportSummary
from .processor import (
    DirectoryProcessor,
    FileMatch,
    ProcessSummary,
    extract_table_name,
    match_files_to_tables,
    scan_directory,
)

__all__ = [
    # Reader
    "CSVBatchReader",
    "count_rows",
    "detect_encoding",
    # Mapper
    "ColumnMapping",
    "MapOutcome",
    "map_columns",
    # Coercion
    "CoercedValue",
    "coerce_value",
    "coerce_row",
    "coerce_batch",
    # Pool
    "Batch",
    "BatchResult",
    "PoolState",
    "WorkerPool",
    # Importer
    "BulkImporter",
    "ImportConfig",
    "ImportSummary",
    # Directory processing
    "DirectoryProcessor",
    "FileMatch",
    "ProcessSummary",
    "extract_table_name",
    "match_files_to_tables",
    "scan_directory",
]
