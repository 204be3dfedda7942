"""Pytest configuration and fixtures for tablesync tests."""

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.database import get_memory_connection


@pytest.fixture
def memory_db():
    """In-memory DatabaseConnection shared by all cursors of one test."""
    db = get_memory_connection()
    yield db
    db.close()


@pytest.fixture
def sample_tables(memory_db):
    """Create destination tables covering the import modes."""
    memory_db.execute("""
        CREATE TABLE people (
            ID INTEGER PRIMARY KEY,
            NAME VARCHAR NOT NULL
        )
    """)

    memory_db.execute("""
        CREATE TABLE events (
            event_id INTEGER,
            amount INTEGER CHECK (amount >= 0),
            label VARCHAR,
            occurred_at TIMESTAMP
        )
    """)

    memory_db.execute("CREATE SEQUENCE product_seq START 100")
    memory_db.execute("""
        CREATE TABLE products (
            product_id INTEGER DEFAULT nextval('product_seq') PRIMARY KEY,
            sku VARCHAR NOT NULL,
            price DECIMAL(10, 2),
            active BOOLEAN
        )
    """)

    memory_db.execute("""
        CREATE TABLE order_lines (
            order_id INTEGER,
            line_no INTEGER,
            quantity INTEGER,
            PRIMARY KEY (order_id, line_no)
        )
    """)

    memory_db.execute("INSERT INTO people VALUES (1, 'Ada'), (2, 'Grace')")
    return memory_db


@pytest.fixture
def write_csv(tmp_path):
    """Factory writing a header plus rows to a CSV file under tmp_path."""

    def _write(name, headers, rows, delimiter=",", encoding="utf-8"):
        path = tmp_path / name
        lines = [delimiter.join(headers)]
        lines.extend(delimiter.join(str(v) for v in row) for row in rows)
        path.write_text("\n".join(lines) + "\n", encoding=encoding)
        return path

    return _write


@pytest.fixture
def temp_data_dir(tmp_path):
    """Create input/processed directory structure."""
    input_dir = tmp_path / "csv_input"
    processed_dir = tmp_path / "csv_processed"
    input_dir.mkdir()
    return input_dir, processed_dir
