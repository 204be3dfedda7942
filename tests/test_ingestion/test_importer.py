"""End-to-end tests for BulkImporter against an in-memory DuckDB."""

import threading
from datetime import datetime

import pytest

from src.errors import MappingError, SchemaError, WriteError
from src.ingestion.importer import BulkImporter, ImportConfig, ImportSummary
from src.ingestion.pool import BatchResult


class TestImportConfig:
    """Run settings validation."""

    def test_defaults_come_from_settings(self):
        from config import config

        import_config = ImportConfig(table="main.people")
        assert import_config.batch_size == config.imports.batch_size
        assert import_config.workers == config.imports.workers

    @pytest.mark.parametrize("kwargs", [
        {"batch_size": 0},
        {"workers": 0},
        {"batch_timeout": 0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            ImportConfig(table="main.people", **kwargs)


class TestImportSummary:
    """Aggregation of batch results."""

    def test_record_and_status(self):
        summary = ImportSummary(filename="f.csv", table="main.t")
        summary.record(BatchResult(0, 10, coercion_fallbacks=2))
        summary.record(BatchResult(1, 5, WriteError("bad row", 1)))

        assert summary.rows_attempted == 15
        assert summary.rows_inserted == 10
        assert summary.batches_failed == 1
        assert summary.coercion_fallbacks == 2
        assert summary.error_messages == ["batch 1: bad row"]
        assert summary.status == "completed_with_errors"

    def test_failure_sample_is_bounded(self):
        summary = ImportSummary(filename="f.csv", table="main.t")
        for i in range(25):
            summary.record(BatchResult(i, 1, WriteError("nope", i)))

        assert summary.batches_failed == 25
        assert len(summary.error_messages) == 10

    def test_cancelled_status_wins(self):
        summary = ImportSummary(filename="f.csv", table="main.t", cancelled=True)
        assert summary.status == "cancelled"

    def test_format_lines(self):
        summary = ImportSummary(filename="f.csv", table="main.t", rows_inserted=1234)
        lines = summary.format_lines()

        assert any("1,234" in line for line in lines)
        assert lines[-1].endswith("success")


class TestBulkImporter:
    """Full pipeline runs."""

    def test_end_to_end_upsert(self, sample_tables, write_csv):
        """Extra source columns are skipped; 1000 rows arrive as two batches."""
        rows = [[i, f"name{i}", "ignored"] for i in range(1, 1001)]
        path = write_csv("people.csv", ["ID", "NAME", "EXTRA"], rows)
        progress = []

        importer = BulkImporter(sample_tables, progress=progress.append)
        summary = importer.run(path, ImportConfig(table="main.people", batch_size=500, workers=4))

        assert summary.status == "success"
        assert summary.mode == "upsert"
        assert summary.columns_skipped == ["EXTRA"]
        assert summary.batches_submitted == 2
        assert summary.batches_succeeded == 2
        assert summary.rows_inserted == 1000
        assert sorted(progress) == [500, 500]

        count = sample_tables.execute("SELECT COUNT(*) FROM people").fetchone()[0]
        assert count == 1000
        # Pre-existing keys were updated in place
        name = sample_tables.execute("SELECT NAME FROM people WHERE ID = 1").fetchone()[0]
        assert name == "name1"

    def test_partial_failure_is_isolated(self, sample_tables, write_csv):
        """One bad batch out of ten is rolled back; the other nine commit."""
        rows = [[i, -1 if i == 55 else i, f"label{i}"] for i in range(100)]
        path = write_csv("events.csv", ["event_id", "amount", "label"], rows)

        summary = BulkImporter(sample_tables).run(
            path, ImportConfig(table="main.events", batch_size=10, workers=4)
        )

        assert summary.mode == "insert"
        assert summary.batches_submitted == 10
        assert summary.batches_succeeded == 9
        assert summary.batches_failed == 1
        assert summary.rows_inserted == 90
        assert summary.status == "completed_with_errors"
        assert summary.error_messages[0].startswith("batch 5:")

        stored = sample_tables.execute("SELECT COUNT(*) FROM events").fetchone()[0]
        assert stored == 90
        bad_batch = sample_tables.execute(
            "SELECT COUNT(*) FROM events WHERE event_id BETWEEN 50 AND 59"
        ).fetchone()[0]
        assert bad_batch == 0

    def test_values_are_coerced(self, sample_tables, write_csv):
        path = write_csv(
            "events.csv",
            ["EVENT_ID", "Amount", "occurred_at", "label"],
            [[1, 10, "2024-01-15T10:30:00.000", " padded "], [2, "", "2024-01-16", "x"]],
        )

        BulkImporter(sample_tables).run(path, ImportConfig(table="main.events", workers=1))

        rows = sample_tables.execute(
            "SELECT event_id, amount, occurred_at, label FROM events ORDER BY event_id"
        ).fetchall()
        assert rows == [
            (1, 10, datetime(2024, 1, 15, 10, 30), "padded"),
            (2, None, datetime(2024, 1, 16), "x"),
        ]

    def test_explicit_key_columns(self, sample_tables, write_csv):
        first = write_csv("a.csv", ["event_id", "label"], [[1, "old"], [2, "two"]])
        second = write_csv("b.csv", ["event_id", "label"], [[1, "new"]])
        import_config = ImportConfig(table="main.events", key_columns=["EVENT_ID"], workers=1)

        BulkImporter(sample_tables).run(first, import_config)
        summary = BulkImporter(sample_tables).run(second, import_config)

        assert summary.mode == "upsert"
        rows = sample_tables.execute("SELECT event_id, label FROM events ORDER BY 1").fetchall()
        assert rows == [(1, "new"), (2, "two")]

    def test_identity_key_values_are_written(self, sample_tables, write_csv):
        path = write_csv(
            "products.csv",
            ["product_id", "sku", "price", "active"],
            [[10, "A", "9.99", "true"], [11, "B", "", "no"]],
        )

        summary = BulkImporter(sample_tables).run(path, ImportConfig(table="main.products"))

        assert summary.status == "success"
        rows = sample_tables.execute(
            "SELECT product_id, sku, active FROM products ORDER BY 1"
        ).fetchall()
        assert rows == [(10, "A", True), (11, "B", False)]

    def test_unknown_table(self, sample_tables, write_csv):
        path = write_csv("x.csv", ["ID"], [[1]])

        with pytest.raises(SchemaError):
            BulkImporter(sample_tables).run(path, ImportConfig(table="main.nowhere"))

    def test_missing_required_column_aborts_before_writing(self, sample_tables, write_csv):
        path = write_csv("people.csv", ["ID", "EXTRA"], [[3, "x"]])

        with pytest.raises(MappingError) as exc_info:
            BulkImporter(sample_tables).run(path, ImportConfig(table="main.people"))

        assert exc_info.value.unmatched == ["NAME"]
        assert sample_tables.execute("SELECT COUNT(*) FROM people").fetchone()[0] == 2

    def test_duplicate_headers_are_rejected(self, sample_tables, write_csv):
        path = write_csv("people.csv", ["ID", "NAME", "name"], [[3, "a", "b"]])

        with pytest.raises(MappingError, match="same table column"):
            BulkImporter(sample_tables).run(path, ImportConfig(table="main.people"))

    def test_key_column_missing_from_file(self, sample_tables, write_csv):
        path = write_csv("events.csv", ["event_id", "amount"], [[1, 2]])

        with pytest.raises(MappingError) as exc_info:
            BulkImporter(sample_tables).run(
                path, ImportConfig(table="main.events", key_columns=["label"])
            )

        assert exc_info.value.unmatched == ["label"]

    def test_parse_error_keeps_rows_read_so_far(self, sample_tables, tmp_path):
        path = tmp_path / "events.csv"
        path.write_text(
            "event_id,amount\n1,1\n2,2\n3,3\n4,4,4\n5,5\n",
            encoding="utf-8",
        )

        summary = BulkImporter(sample_tables).run(
            path, ImportConfig(table="main.events", batch_size=2, workers=2)
        )

        assert summary.parse_error.startswith("line 5:")
        assert summary.status == "completed_with_errors"
        assert summary.rows_inserted == 3
        assert sample_tables.execute("SELECT COUNT(*) FROM events").fetchone()[0] == 3

    def test_cancel_before_run(self, sample_tables, write_csv):
        path = write_csv("events.csv", ["event_id"], [[i] for i in range(50)])
        importer = BulkImporter(sample_tables)
        importer.cancel()

        summary = importer.run(path, ImportConfig(table="main.events", batch_size=10))

        assert summary.status == "cancelled"
        assert summary.rows_inserted == 0

    def test_progress_sink_error_stops_all_threads(self, sample_tables, write_csv, caplog):
        """The sink's error propagates only after the producer and workers are gone."""
        path = write_csv("events.csv", ["event_id"], [[i] for i in range(400)])

        def failing_progress(count):
            raise RuntimeError("progress display broke")

        importer = BulkImporter(sample_tables, progress=failing_progress)

        with pytest.raises(RuntimeError, match="progress display broke"):
            importer.run(path, ImportConfig(table="main.events", batch_size=10, workers=2))

        leftovers = [t for t in threading.enumerate() if t.name.startswith("tablesync-")]
        for thread in leftovers:
            thread.join(timeout=2)
        assert not any(thread.is_alive() for thread in leftovers)
        assert "Reading events.csv failed" not in caplog.text
