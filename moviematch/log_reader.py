"""
Viewing-log reader.

Turns a delimited text export into ExternalRecord rows. Row identity is the
1-based position of the line among the non-blank lines of the file, header
included, so the first data row is row 2.
"""

import csv
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .errors import InputNotFound, LogFormatError, RowParseError
from .logger import get_logger
from .models import ExternalRecord
from .normalize import clean_optional
from .schema import field_value, resolve_columns, validate_log_row

logger = get_logger()


@dataclass
class LogBatch:
    records: List[ExternalRecord] = field(default_factory=list)
    skipped: List[RowParseError] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


def _split(line: str, delimiter: str) -> List[str]:
    return next(csv.reader([line], delimiter=delimiter, skipinitialspace=False))


def parse_log_lines(
    lines: List[str],
    limit_rows: Optional[int] = None,
    skip_rows: int = 0,
    delimiter: str = ",",
) -> LogBatch:
    """
    Parse already-read log lines.

    Args:
        lines: Raw lines, header first. Blank lines are ignored.
        limit_rows: Maximum number of data lines to examine (None = all)
        skip_rows: Number of data lines to skip after the header
        delimiter: Field delimiter

    Returns:
        LogBatch with admitted records and the rows that were skipped
    """
    lines = [line.rstrip("\r\n") for line in lines if line.strip()]
    if not lines:
        raise LogFormatError("Log is empty")

    headers = [h.strip() for h in _split(lines[0], delimiter)]
    columns = resolve_columns(headers)

    start = 1 + max(skip_rows, 0)
    end = len(lines) if limit_rows is None else min(start + limit_rows, len(lines))

    batch = LogBatch()
    for index in range(start, end):
        row_number = index + 1
        values = _split(lines[index], delimiter)
        errors = validate_log_row(values, len(headers), columns)
        if errors:
            err = RowParseError(row_number, errors)
            logger.warning("Skipping log row", row=row_number, reasons=errors)
            batch.skipped.append(err)
            continue

        def get(name: str) -> str:
            return (field_value(values, columns, name) or "").strip()

        batch.records.append(
            ExternalRecord(
                row_number=row_number,
                title=get("title"),
                year=get("year"),
                director=clean_optional(get("director")),
                notes=get("notes"),
                completed=clean_optional(get("completed")),
                ordinal=get("ordinal"),
            )
        )

    logger.info(
        f"Parsed viewing log: {len(batch.records)} rows admitted, {batch.skipped_count} skipped",
        admitted=len(batch.records),
        skipped=batch.skipped_count,
    )
    return batch


def load_external_records(
    path: Path,
    limit_rows: Optional[int] = None,
    skip_rows: int = 0,
    delimiter: str = ",",
) -> LogBatch:
    """Read a viewing log from disk. Raises InputNotFound if it is missing."""
    path = Path(path)
    if not path.exists():
        raise InputNotFound(f"Input file not found: {path}")
    with path.open("r", encoding="utf-8-sig") as f:
        lines = f.read().split("\n")
    return parse_log_lines(lines, limit_rows=limit_rows, skip_rows=skip_rows, delimiter=delimiter)
