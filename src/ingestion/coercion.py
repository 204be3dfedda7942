"""Convert raw text fields into values suited to destination column types.

Coercion is best effort and never raises: a value that does not parse as the
column's declared type is passed through as the trimmed string, flagged as a
fallback, and left for the database to accept or reject.
"""

import re
from datetime import datetime
from typing import List, NamedTuple, Optional, Sequence, Tuple

from src.database.catalog import ColumnDescriptor

# Tried in order; %f accepts both millisecond and microsecond fractions
TIMESTAMP_FORMATS = [
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
]

TEMPORAL_TYPES = {
    "date", "time", "timestamp", "timestamptz", "timestamp with time zone",
    "timestamp_s", "timestamp_ms", "timestamp_ns", "timestamp_us",
    "datetime", "datetime2", "smalldatetime", "datetimeoffset",
}

NUMERIC_TYPES = {
    "tinyint", "smallint", "integer", "int", "bigint", "hugeint",
    "utinyint", "usmallint", "uinteger", "ubigint", "uhugeint",
    "int1", "int2", "int4", "int8", "long", "short", "signed",
    "decimal", "numeric", "money", "smallmoney",
    "double", "double precision", "float", "float4", "float8", "real",
}

BOOLEAN_TYPES = {"boolean", "bool", "bit", "logical"}

TRUE_VALUES = {"1", "true", "yes", "y"}
FALSE_VALUES = {"0", "false", "no", "n"}

_TYPE_PARAMS = re.compile(r"\(.*\)")


class CoercedValue(NamedTuple):
    """A coerced field: the typed value, or the raw string when parsing failed."""
    value: object
    fallback: bool = False


def normalize_type(data_type: str) -> str:
    """Lower-case a declared type and drop parameters such as ``(18,2)``."""
    return " ".join(_TYPE_PARAMS.sub("", data_type or "").lower().split())


def type_family(data_type: str) -> str:
    """Classify a declared type as temporal, numeric, boolean or text."""
    normalized = normalize_type(data_type)
    if normalized in TEMPORAL_TYPES or normalized.startswith("timestamp"):
        return "temporal"
    if normalized in NUMERIC_TYPES:
        return "numeric"
    if normalized in BOOLEAN_TYPES:
        return "boolean"
    return "text"


def parse_timestamp(value: str) -> Optional[datetime]:
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def parse_number(value: str):
    # Python accepts digit separators; source files never mean them
    if "_" in value:
        return None
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return None


def parse_bool(value: str) -> Optional[bool]:
    lowered = value.lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    return None


_PARSERS = {
    "temporal": parse_timestamp,
    "numeric": parse_number,
    "boolean": parse_bool,
}


def coerce_value(raw: Optional[str], column: ColumnDescriptor) -> CoercedValue:
    """
    Convert one raw field for a destination column.

    Args:
        raw: Field text from the source file (None when the row is short).
        column: Destination column.

    Returns:
        CoercedValue holding the typed value, None, or the trimmed string.
    """
    if raw is None:
        return CoercedValue(None)

    value = raw.strip()
    if value == "":
        # Non-nullable columns get the empty string; the database decides
        return CoercedValue(None if column.nullable else value)

    parser = _PARSERS.get(type_family(column.data_type))
    if parser is None:
        return CoercedValue(value)

    parsed = parser(value)
    if parsed is None:
        return CoercedValue(value, fallback=True)
    return CoercedValue(parsed)


def coerce_row(row: Sequence[str], mappings) -> Tuple[list, int]:
    """
    Coerce one source row into destination column order.

    Args:
        row: Raw fields of one source record.
        mappings: Ordered ColumnMapping sequence.

    Returns:
        Tuple of (typed values, number of fallbacks).
    """
    values = []
    fallbacks = 0
    for mapping in mappings:
        raw = row[mapping.source_index] if mapping.source_index < len(row) else None
        coerced = coerce_value(raw, mapping.column)
        values.append(coerced.value)
        if coerced.fallback:
            fallbacks += 1
    return values, fallbacks


def coerce_batch(rows: Sequence[Sequence[str]], mappings) -> Tuple[List[list], int]:
    """
    Coerce every row of a batch.

    Returns:
        Tuple of (typed rows, total fallbacks in the batch).
    """
    converted = []
    total_fallbacks = 0
    for row in rows:
        values, fallbacks = coerce_row(row, mappings)
        converted.append(values)
        total_fallbacks += fallbacks
    return converted, total_fallbacks
