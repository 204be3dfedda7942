"""Stream delimited source files in fixed-size batches.

The reader never holds more than one batch of rows in memory. The header
row is read when the file is opened; every following record must have the
same number of fields.
"""

import csv
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import chardet

from config.logging_config import get_logger
from src.errors import ParseError

logger = get_logger("reader")

# Allow very wide text fields
csv.field_size_limit(sys.maxsize)


def detect_encoding(filepath: Path, sample_size: int = 64 * 1024) -> str:
    """
    Detect file encoding by sampling the file content.

    Args:
        filepath: Path to the file.
        sample_size: Number of bytes to sample for detection.

    Returns:
        Detected encoding (defaults to 'utf-8' if unsure).
    """
    with open(filepath, "rb") as f:
        raw_data = f.read(sample_size)

    if raw_data.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"
    if raw_data.startswith(b"\xff\xfe") or raw_data.startswith(b"\xfe\xff"):
        return "utf-16"

    result = chardet.detect(raw_data)
    encoding = (result.get("encoding") or "").lower()
    confidence = result.get("confidence") or 0

    # ASCII samples are valid UTF-8; later bytes may not be ASCII
    if not encoding or encoding == "ascii" or confidence < 0.9:
        return "utf-8"

    encoding_map = {
        "iso-8859-1": "latin-1",
        "windows-1252": "cp1252",
    }
    return encoding_map.get(encoding, encoding)


def count_rows(filepath: Path) -> int:
    """
    Quick count of data lines in a file (physical lines minus the header).

    Used to size progress displays; quoted fields spanning lines make it an
    overestimate.

    Args:
        filepath: Path to the file.

    Returns:
        Number of data lines, or 0 if the file cannot be read.
    """
    count = 0
    try:
        with open(filepath, "rb") as f:
            while True:
                chunk = f.read(64 * 1024)
                if not chunk:
                    break
                count += chunk.count(b"\n")
    except OSError as e:
        logger.warning(f"Could not count rows in {filepath}: {e}")
        return 0
    return max(count - 1, 0)


class CSVBatchReader:
    """Read a header-plus-rows delimited file in batches."""

    def __init__(self, filepath: Path, delimiter: str = ",", encoding: Optional[str] = None):
        """
        Initialize the reader. Call ``open()`` (or use as a context manager) before reading.

        Args:
            filepath: Source file.
            delimiter: Field delimiter.
            encoding: File encoding; detected when None.
        """
        self.filepath = Path(filepath)
        self.delimiter = delimiter
        self.encoding = encoding
        self._file = None
        self._reader = None
        self._headers: List[str] = []
        self._exhausted = False

    @classmethod
    def open(cls, filepath: Path, delimiter: str = ",", encoding: Optional[str] = None) -> "CSVBatchReader":
        """
        Open a file and read its header row.

        Raises:
            OSError: If the file cannot be opened or its header cannot be read.
        """
        reader = cls(filepath, delimiter=delimiter, encoding=encoding)
        reader._open()
        return reader

    def _open(self) -> None:
        try:
            if self.encoding is None:
                self.encoding = detect_encoding(self.filepath)
            self._file = open(self.filepath, "r", encoding=self.encoding, newline="")
        except OSError as e:
            raise OSError(f"Cannot open {self.filepath}: {e}") from e

        self._reader = csv.reader(self._file, delimiter=self.delimiter)
        try:
            headers = next(self._reader, None)
        except (csv.Error, UnicodeDecodeError) as e:
            self.close()
            raise OSError(f"Cannot read header row of {self.filepath}: {e}") from e

        if not headers:
            self.close()
            raise OSError(f"No header row in {self.filepath}")

        self._headers = headers
        logger.debug(
            f"Opened {self.filepath.name} ({self.encoding}) with {len(headers)} columns"
        )

    @property
    def headers(self) -> List[str]:
        return list(self._headers)

    @property
    def line_number(self) -> int:
        return self._reader.line_num if self._reader is not None else 0

    def read_batch(self, size: int) -> Tuple[List[List[str]], bool]:
        """
        Read up to ``size`` records.

        Args:
            size: Maximum number of records to return.

        Returns:
            Tuple of (rows, more_available). ``more_available`` is False only
            on the call that reached the end of input; that call still
            returns any rows it read.

        Raises:
            ParseError: On a malformed record. The reader is exhausted
                afterwards; rows read before the bad record ride along on
                the error as ``partial_rows``.
        """
        if size < 1:
            raise ValueError("batch size must be at least 1")
        if self._reader is None:
            raise RuntimeError("Reader is not open")
        if self._exhausted:
            return [], False

        batch: List[List[str]] = []
        expected = len(self._headers)
        while len(batch) < size:
            try:
                record = next(self._reader)
            except StopIteration:
                self._exhausted = True
                return batch, False
            except (csv.Error, UnicodeDecodeError) as e:
                self._exhausted = True
                raise ParseError(self.line_number, str(e), batch) from e

            if not record:
                continue
            if len(record) != expected:
                self._exhausted = True
                raise ParseError(
                    self.line_number,
                    f"wrong number of fields (expected {expected}, got {len(record)})",
                    batch,
                )
            batch.append(record)

        return batch, True

    def close(self) -> None:
        """Close the underlying file."""
        if self._file is not None:
            self._file.close()
            self._file = None

    def __enter__(self):
        """Context manager entry."""
        if self._file is None:
            self._open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False
