#!/usr/bin/env python
"""
List the tables of the target database, optionally with their columns.

Usage:
    python scripts/list_tables.py [--db PATH | --target prod] [--columns] [--filter TEXT]
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import ConfigurationError, config, database_path_for_target
from config.logging_config import setup_logging, get_logger
from src.database import SchemaCatalog, get_connection
from src.errors import SchemaError


def main(argv=None) -> int:
    """Main entry point for table listing."""
    parser = argparse.ArgumentParser(description="List tables in the target database")
    parser.add_argument("--target", choices=["prod", "test"], default=None, help="Database target")
    parser.add_argument("--db", type=Path, default=None, help="Custom database path")
    parser.add_argument("--filter", default=None, help="Only tables containing this text")
    parser.add_argument("--columns", action="store_true", help="Show columns and keys")
    parser.add_argument("--version", action="version", version=f"%(prog)s {config.app.version}")
    args = parser.parse_args(argv)

    try:
        db_path = args.db or database_path_for_target(args.target)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(log_level=config.app.log_level)
    logger = get_logger("list_tables")

    try:
        with get_connection(db_path, read_only=True) as db:
            catalog = SchemaCatalog(db.connection)
            tables = catalog.list_tables()
            if args.filter:
                needle = args.filter.lower()
                tables = [t for t in tables if needle in t.lower()]

            for table in tables:
                print(table)
                if not args.columns:
                    continue
                keys = {k.lower() for k in catalog.fetch_key_columns(table)}
                for column in catalog.fetch_columns(table):
                    flags = []
                    if column.name.lower() in keys:
                        flags.append("key")
                    if not column.nullable:
                        flags.append("not null")
                    if column.is_identity:
                        flags.append("identity")
                    suffix = f" ({', '.join(flags)})" if flags else ""
                    print(f"    {column.name}: {column.data_type}{suffix}")
    except SchemaError as e:
        logger.error(str(e))
        return 1

    if not tables:
        print("No tables found.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
