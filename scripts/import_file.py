#!/usr/bin/env python
"""
Import a delimited file into a DuckDB table.

Rows are read in batches and written by concurrent workers, one transaction
per batch. Tables with a primary key (or explicit --key-columns) are
upserted; others are appended to.

Usage:
    python scripts/import_file.py --file orders.csv --table main.orders [options]

Options:
    --batch-size N      Rows per batch
    --workers N         Parallel worker count
    --key-columns A,B   Upsert on these columns instead of the primary key
    --identity          Explicit values are written to an identity key column
    --timeout SECONDS   Time allowed per batch
    --target NAME       Read the database path from {NAME}_DB_PATH (prod, test)
    --db PATH           Database path
"""

import argparse
import sys
from pathlib import Path

from tqdm import tqdm

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import (
    ConfigurationError,
    apply_overrides,
    config,
    database_path_for_target,
    load_overrides,
)
from config.logging_config import get_logger, progress_safe_logging, setup_logging
from src.database import get_connection
from src.errors import TableSyncError
from src.ingestion import BulkImporter, ImportConfig, count_rows


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import a CSV file into a DuckDB table",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--file", type=Path, required=True, help="Path to the source file")
    parser.add_argument("--table", required=True, help="Target table as schema.name")
    parser.add_argument("--batch-size", type=int, default=None, help="Rows per batch")
    parser.add_argument("--workers", type=int, default=None, help="Parallel worker count")
    parser.add_argument(
        "--key-columns",
        type=str,
        default=None,
        help="Comma-separated upsert key columns (default: the table's primary key)",
    )
    parser.add_argument(
        "--identity",
        action="store_true",
        help="Explicit values are supplied for an identity key column",
    )
    parser.add_argument("--timeout", type=float, default=None, help="Seconds allowed per batch")
    parser.add_argument("--delimiter", default=None, help="Field delimiter")
    parser.add_argument("--encoding", default=None, help="File encoding (detected if omitted)")
    parser.add_argument("--target", choices=["prod", "test"], default=None, help="Database target")
    parser.add_argument("--db", type=Path, default=None, help="Custom database path")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level",
    )
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    parser.add_argument("--version", action="version", version=f"%(prog)s {config.app.version}")
    return parser


def _given(value, default):
    """Command-line value unless the flag was omitted; 0 and "" count as given."""
    return default if value is None else value


def main(argv=None) -> int:
    """Main entry point for single-file imports."""
    args = build_parser().parse_args(argv)

    try:
        apply_overrides(config, load_overrides())
        db_path = args.db or database_path_for_target(args.target)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(log_level=args.log_level or config.app.log_level, log_file=args.log_file)
    logger = get_logger("import_file")

    if not args.file.exists():
        logger.error(f"File not found: {args.file}")
        return 1

    key_columns = None
    if args.key_columns:
        key_columns = [c.strip() for c in args.key_columns.split(",") if c.strip()]

    try:
        import_config = ImportConfig(
            table=args.table,
            batch_size=_given(args.batch_size, config.imports.batch_size),
            workers=_given(args.workers, config.imports.workers),
            key_columns=key_columns,
            has_identity=args.identity,
            batch_timeout=_given(args.timeout, config.imports.batch_timeout),
            delimiter=_given(args.delimiter, config.imports.delimiter),
            encoding=args.encoding,
        )
    except ValueError as e:
        logger.error(str(e))
        return 2

    total_rows = count_rows(args.file)
    with progress_safe_logging(), tqdm(
        total=total_rows,
        desc="Importing",
        unit="rows",
        disable=args.no_progress,
    ) as bar:
        try:
            with get_connection(db_path) as db:
                summary = BulkImporter(db, progress=bar.update).run(args.file, import_config)
        except (TableSyncError, OSError) as e:
            logger.error(f"Import failed: {e}")
            return 1

    print("\n--- Import Summary ---")
    for line in summary.format_lines():
        print(line)

    return 0 if summary.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
