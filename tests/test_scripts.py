"""Tests for the command-line entry points."""

import logging

import pytest

from config import config
from config.logging_config import ROOT_LOGGER


@pytest.fixture(autouse=True)
def reset_logging():
    """Scripts install console handlers; drop them so later tests start clean."""
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


class TestVersionFlag:
    """Every script reports the application version."""

    @pytest.mark.parametrize("module", ["import_file", "process_directory", "list_tables"])
    def test_version(self, module, capsys):
        import importlib

        script = importlib.import_module(f"scripts.{module}")

        with pytest.raises(SystemExit) as exc_info:
            script.main(["--version"])

        assert exc_info.value.code == 0
        assert config.app.version in capsys.readouterr().out


class TestImportFileArguments:
    """Explicit zero values are validated instead of replaced by defaults."""

    @pytest.mark.parametrize("flag", ["--batch-size", "--workers", "--timeout"])
    def test_zero_is_rejected(self, flag, write_csv, tmp_path):
        from scripts.import_file import main

        path = write_csv("people.csv", ["ID", "NAME"], [[3, "Edsger"]])
        db_path = tmp_path / "cli.duckdb"

        code = main([
            "--file", str(path),
            "--table", "main.people",
            flag, "0",
            "--db", str(db_path),
            "--no-progress",
        ])

        assert code == 2
        assert not db_path.exists()

    def test_empty_delimiter_is_not_replaced(self, write_csv, tmp_path, monkeypatch):
        from scripts import import_file

        path = write_csv("people.csv", ["ID", "NAME"], [[3, "Edsger"]])
        captured = {}

        class StopBeforeImport(Exception):
            pass

        def capture_config(**kwargs):
            captured.update(kwargs)
            raise StopBeforeImport()

        monkeypatch.setattr(import_file, "ImportConfig", capture_config)

        with pytest.raises(StopBeforeImport):
            import_file.main([
                "--file", str(path),
                "--table", "main.people",
                "--delimiter", "",
                "--db", str(tmp_path / "cli.duckdb"),
            ])

        assert captured["delimiter"] == ""


class TestProcessDirectoryArguments:
    """Zero values for the directory command."""

    @pytest.mark.parametrize("flag", ["--batch-size", "--workers", "--timeout"])
    def test_zero_is_rejected(self, flag, temp_data_dir, tmp_path):
        from scripts.process_directory import main

        input_dir, processed_dir = temp_data_dir

        code = main([
            "--input-dir", str(input_dir),
            "--processed-dir", str(processed_dir),
            flag, "0",
            "--db", str(tmp_path / "cli.duckdb"),
            "--no-progress",
        ])

        assert code == 2
