#!/usr/bin/env python
"""
Batch-process every CSV file in an input directory.

Each file named like ``TABLE_NAME_inserts_20260211_170255.csv`` is imported
into ``main.TABLE_NAME``. Files are processed one after another; those that
load without a failed batch are moved to the processed directory.

Usage:
    python scripts/process_directory.py [--input-dir DIR] [--processed-dir DIR] [options]
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
from src.ingestion import DirectoryProcessor, count_rows


def main(argv=None) -> int:
    """Main entry point for directory processing."""
    parser = argparse.ArgumentParser(
        description="Import all matching CSV files from a directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--input-dir", type=Path, default=None, help="Directory to scan")
    parser.add_argument("--processed-dir", type=Path, default=None, help="Where imported files go")
    parser.add_argument("--schema", default="main", help="Schema of the target tables")
    parser.add_argument("--batch-size", type=int, default=None, help="Rows per batch")
    parser.add_argument("--workers", type=int, default=None, help="Parallel worker count")
    parser.add_argument("--timeout", type=float, default=None, help="Seconds allowed per batch")
    parser.add_argument("--target", choices=["prod", "test"], default=None, help="Database target")
    parser.add_argument("--db", type=Path, default=None, help="Custom database path")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level",
    )
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")
    parser.add_argument("--no-progress", action="store_true", help="Disable progress bars")
    parser.add_argument("--version", action="version", version=f"%(prog)s {config.app.version}")
    args = parser.parse_args(argv)

    try:
        apply_overrides(config, load_overrides())
        db_path = args.db or database_path_for_target(args.target)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(log_level=args.log_level or config.app.log_level, log_file=args.log_file)
    logger = get_logger("process_directory")

    input_dir = args.input_dir or config.imports.input_dir
    processed_dir = args.processed_dir or config.imports.processed_dir
    batch_size = args.batch_size if args.batch_size is not None else config.imports.batch_size
    workers = args.workers if args.workers is not None else config.imports.workers
    batch_timeout = args.timeout if args.timeout is not None else config.imports.batch_timeout

    if not input_dir.is_dir():
        logger.error(f"Input directory not found: {input_dir}")
        return 1

    bars = []

    def progress_for(match):
        bar = tqdm(
            total=count_rows(match.path),
            desc=match.filename,
            unit="rows",
            disable=args.no_progress,
            leave=True,
        )
        bars.append(bar)
        return bar.update

    try:
        with progress_safe_logging(), get_connection(db_path) as db:
            processor = DirectoryProcessor(
                db,
                batch_size=batch_size,
                workers=workers,
                batch_timeout=batch_timeout,
                schema=args.schema,
                progress_factory=progress_for,
            )
            summary = processor.run(input_dir, processed_dir)
    except ValueError as e:
        logger.error(str(e))
        return 2
    except (TableSyncError, OSError) as e:
        logger.error(f"Processing failed: {e}")
        return 1
    finally:
        for bar in bars:
            bar.close()

    print("\n=== Process Summary ===")
    print(f"Files found:     {summary.files_found}")
    print(f"Files matched:   {len(summary.matched)}")
    print(f"Succeeded:       {len(summary.succeeded)}")
    print(f"Failed:          {len(summary.failed)}")
    print(f"Total rows:      {summary.total_rows:,}")
    for filename, reason in summary.failed.items():
        print(f"  FAILED {filename}: {reason}")
    for description in summary.unmatched:
        print(f"  UNMATCHED {description}")

    return 0 if not summary.failed else 1


if __name__ == "__main__":
    sys.exit(main())
