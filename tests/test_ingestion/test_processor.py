"""Tests for directory scanning and sequential file processing."""

from pathlib import Path

import pytest

from src.ingestion.processor import (
    DirectoryProcessor,
    extract_table_name,
    match_files_to_tables,
    scan_directory,
)


class TestFileMatching:
    """Filename to table resolution."""

    def test_extract_table_name(self):
        assert extract_table_name("SHIPPING_CONTAINER_inserts_20260211_170255.csv") == "SHIPPING_CONTAINER"
        assert extract_table_name("people_INSERTS_1.csv") == "people"
        assert extract_table_name("people.csv") is None
        assert extract_table_name("_inserts_2026.csv") is None

    def test_scan_directory_is_case_insensitive(self, tmp_path):
        (tmp_path / "a_inserts_1.csv").write_text("x\n")
        (tmp_path / "B_inserts_1.CSV").write_text("x\n")
        (tmp_path / "notes.txt").write_text("x\n")
        (tmp_path / "sub").mkdir()

        names = [p.name for p in scan_directory(tmp_path)]
        assert sorted(names) == ["B_inserts_1.CSV", "a_inserts_1.csv"]

    def test_match_files_to_tables(self):
        files = [
            Path("People_inserts_1.csv"),
            Path("ghost_inserts_1.csv"),
            Path("random.csv"),
        ]
        matched, unmatched = match_files_to_tables(files, ["main.people", "main.events"])

        assert [(m.filename, m.table) for m in matched] == [("People_inserts_1.csv", "main.people")]
        assert unmatched == ["ghost_inserts_1.csv (no table: main.ghost)", "random.csv"]


class TestDirectoryProcessor:
    """Sequential imports with archiving of successful files."""

    def _processor(self, db, **kwargs):
        return DirectoryProcessor(db, batch_size=10, workers=2, batch_timeout=60, **kwargs)

    @pytest.mark.parametrize("kwargs", [
        {"batch_size": 0, "workers": 2, "batch_timeout": 60},
        {"batch_size": 10, "workers": 0, "batch_timeout": 60},
        {"batch_size": 10, "workers": 2, "batch_timeout": 0},
    ])
    def test_invalid_batch_settings(self, sample_tables, kwargs):
        with pytest.raises(ValueError):
            DirectoryProcessor(sample_tables, **kwargs)

    def test_successful_files_are_moved(self, sample_tables, temp_data_dir):
        input_dir, processed_dir = temp_data_dir
        good = input_dir / "people_inserts_20260101_000000.csv"
        good.write_text("ID,NAME\n3,Linus\n4,Ken\n", encoding="utf-8")

        summary = self._processor(sample_tables).run(input_dir, processed_dir)

        assert summary.succeeded == [good.name]
        assert summary.moved == [good.name]
        assert summary.total_rows == 2
        assert not good.exists()
        assert (processed_dir / good.name).exists()

    def test_failed_files_stay_put(self, sample_tables, temp_data_dir):
        input_dir, processed_dir = temp_data_dir
        bad = input_dir / "events_inserts_1.csv"
        bad.write_text("event_id,amount\n1,5\n2,-5\n", encoding="utf-8")
        unmapped = input_dir / "people_inserts_2.csv"
        unmapped.write_text("ID,WRONG\n1,x\n", encoding="utf-8")

        summary = self._processor(sample_tables).run(input_dir, processed_dir)

        assert set(summary.failed) == {bad.name, unmapped.name}
        assert summary.moved == []
        assert bad.exists() and unmapped.exists()

    def test_unmatched_files_are_reported(self, sample_tables, temp_data_dir):
        input_dir, processed_dir = temp_data_dir
        (input_dir / "orphans_inserts_1.csv").write_text("a\n1\n", encoding="utf-8")

        summary = self._processor(sample_tables).run(input_dir, processed_dir)

        assert summary.files_found == 1
        assert summary.matched == []
        assert summary.unmatched == ["orphans_inserts_1.csv (no table: main.orphans)"]

    def test_progress_factory_is_used_per_file(self, sample_tables, temp_data_dir):
        input_dir, processed_dir = temp_data_dir
        (input_dir / "people_inserts_1.csv").write_text("ID,NAME\n3,a\n", encoding="utf-8")
        seen = []

        def factory(match):
            return lambda n: seen.append((match.filename, n))

        self._processor(sample_tables, progress_factory=factory).run(input_dir, processed_dir)

        assert seen == [("people_inserts_1.csv", 1)]
