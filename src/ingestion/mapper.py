"""Match source file headers to destination table columns."""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from config.logging_config import get_logger
from src.database.catalog import ColumnDescriptor
from src.errors import MappingError

logger = get_logger("mapper")


def normalize_name(name: str) -> str:
    """Lookup key for a column or header name."""
    return name.strip().lower()


@dataclass(frozen=True)
class ColumnMapping:
    """One source column feeding one destination column."""
    source_index: int
    source_name: str
    column: ColumnDescriptor


@dataclass
class MapOutcome:
    """Result of mapping source headers onto destination columns."""
    mapped: List[ColumnMapping] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    unmatched_required: List[str] = field(default_factory=list)

    @property
    def destination_columns(self) -> List[str]:
        """Destination column names in write order."""
        return [m.column.name for m in self.mapped]

    @property
    def duplicate_destinations(self) -> List[str]:
        """Destination columns matched by more than one source header."""
        counts = Counter(normalize_name(m.column.name) for m in self.mapped)
        seen = set()
        duplicates = []
        for m in self.mapped:
            key = normalize_name(m.column.name)
            if counts[key] > 1 and key not in seen:
                seen.add(key)
                duplicates.append(m.column.name)
        return duplicates


def map_columns(
    source_headers: Sequence[str],
    dest_columns: Sequence[ColumnDescriptor],
) -> MapOutcome:
    """
    Match source headers to destination columns, ignoring case and surrounding whitespace.

    Headers with no matching column are skipped. Two headers matching the
    same column both stay in ``mapped``.

    Args:
        source_headers: Header row of the source file.
        dest_columns: Destination columns in ordinal order.

    Returns:
        Populated MapOutcome.

    Raises:
        MappingError: If a non-nullable destination column has no matching header.
            The error carries the outcome and the unmatched column names.
    """
    lookup: Dict[str, ColumnDescriptor] = {
        normalize_name(column.name): column for column in dest_columns
    }

    outcome = MapOutcome()
    covered = set()

    for index, header in enumerate(source_headers):
        key = normalize_name(header)
        column = lookup.get(key)
        if column is None:
            outcome.skipped.append(header)
            continue
        outcome.mapped.append(ColumnMapping(source_index=index, source_name=header, column=column))
        covered.add(key)

    for column in dest_columns:
        if not column.nullable and normalize_name(column.name) not in covered:
            outcome.unmatched_required.append(column.name)

    if outcome.skipped:
        logger.warning(
            f"Skipping {len(outcome.skipped)} source columns with no table match: "
            f"{', '.join(outcome.skipped)}"
        )

    if outcome.unmatched_required:
        raise MappingError(
            "Non-nullable table columns have no matching source header: "
            + ", ".join(outcome.unmatched_required),
            outcome=outcome,
            unmatched=outcome.unmatched_required,
        )

    logger.debug(f"Mapped {len(outcome.mapped)} of {len(source_headers)} source columns")
    return outcome
