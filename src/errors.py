"""Error taxonomy for tablesync imports.

SchemaError and MappingError are fatal and raised before any row is written.
ParseError stops reading a file but leaves batches already submitted alone.
WriteError is isolated to one batch and reported through its BatchResult.
"""

from typing import List, Optional, Sequence


class TableSyncError(Exception):
    """Base class for all import errors."""

    pass


class SchemaError(TableSyncError):
    """Destination table or column metadata is unavailable."""

    pass


class MappingError(TableSyncError):
    """Source headers cannot be mapped onto the destination table."""

    def __init__(self, message: str, outcome=None, unmatched: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.outcome = outcome
        self.unmatched: List[str] = list(unmatched or [])


class ParseError(TableSyncError):
    """A malformed record was found in the source stream."""

    def __init__(self, line_number: int, message: str, partial_rows: Optional[list] = None):
        super().__init__(f"line {line_number}: {message}")
        self.line_number = line_number
        self.partial_rows = partial_rows or []


class WriteError(TableSyncError):
    """A batch transaction failed and was rolled back."""

    def __init__(self, message: str, batch: Optional[int] = None):
        if batch is not None:
            message = f"batch {batch}: {message}"
        super().__init__(message)
        self.batch = batch
