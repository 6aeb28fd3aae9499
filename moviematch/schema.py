from typing import Dict, List, Optional, Sequence

from .errors import LogFormatError

# Field name -> accepted header spellings (compared lower-cased, trimmed).
COLUMN_ALIASES = {
    "ordinal": ("#", "no", "no."),
    "year": ("yr", "year"),
    "title": ("title", "name"),
    "director": ("dir.", "dir", "director"),
    "notes": ("notes", "note"),
    "completed": ("completed", "watched", "date"),
}
REQUIRED_FIELDS = ["title"]


def resolve_columns(headers: Sequence[str]) -> Dict[str, int]:
    """
    Map known field names to column positions in the log header.

    Raises LogFormatError when a required column is missing.
    """
    wanted = {alias: name for name, aliases in COLUMN_ALIASES.items() for alias in aliases}
    columns: Dict[str, int] = {}
    for index, header in enumerate(headers):
        name = wanted.get(header.strip().lower())
        if name and name not in columns:
            columns[name] = index

    missing = [f for f in REQUIRED_FIELDS if f not in columns]
    if missing:
        raise LogFormatError(f"Log header is missing required column(s): {', '.join(missing)}")
    return columns


def field_value(values: Sequence[str], columns: Dict[str, int], name: str) -> Optional[str]:
    index = columns.get(name)
    if index is None or index >= len(values):
        return None
    return values[index]


def validate_log_row(values: Sequence[str], header_count: int, columns: Dict[str, int]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means the row
    is admitted.
    """
    errors: List[str] = []

    if len(values) < header_count:
        errors.append(f"Expected {header_count} fields, found {len(values)}")

    for f in REQUIRED_FIELDS:
        value = field_value(values, columns, f)
        if value is None or not value.strip():
            errors.append(f"Field '{f}' must be a non-empty string")

    return errors
