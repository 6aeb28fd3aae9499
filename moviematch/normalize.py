import re
from datetime import date
from typing import Optional

LEADING_INT = re.compile(r"^\s*([+-]?\d+)")
LOG_DATE = re.compile(r"(?<![\d.])(\d{1,2})\.(\d{1,2})\.(\d{4}|\d{2})(?![\d.])")

# Companion names recognised in free-text notes, checked in this order.
COMPANIONS = ("Calen", "Morgan", "Liam", "Elodi")


def normalize_text(s: Optional[str]) -> str:
    """Case-fold and trim. Inner whitespace is left alone."""
    if not s:
        return ""
    return s.strip().lower()


def normalize_title(title: Optional[str]) -> str:
    return normalize_text(title)


def normalize_director(director: Optional[str]) -> str:
    return normalize_text(director)


def clean_optional(value: Optional[str]) -> Optional[str]:
    """Trim a field and turn empty strings into None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_year(value) -> Optional[int]:
    """Read the leading integer of a year field, e.g. '2010' or '2010?'."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    m = LEADING_INT.match(str(value))
    if not m:
        return None
    return int(m.group(1))


def year_to_date(value) -> Optional[date]:
    year = parse_year(value)
    if year is None or not 1 <= year <= 9999:
        return None
    return date(year, 1, 1)


def _build_date(month: str, day: str, year: str) -> Optional[date]:
    full_year = f"20{year}" if len(year) == 2 else year
    try:
        return date(int(full_year), int(month), int(day))
    except ValueError:
        return None


def parse_log_date(value: Optional[str]) -> Optional[date]:
    """Parse an 'M.D.Y' or 'M.D.YY' date. Two-digit years are 20YY."""
    value = clean_optional(value)
    if not value:
        return None
    parts = value.split(".")
    if len(parts) != 3 or not all(p.strip().isdigit() for p in parts):
        return None
    month, day, year = (p.strip() for p in parts)
    if len(year) not in (2, 4):
        return None
    return _build_date(month, day, year)


def find_log_date(notes: Optional[str]) -> Optional[date]:
    """First 'M.D.Y' date embedded in free text, if any."""
    if not notes:
        return None
    for m in LOG_DATE.finditer(notes):
        found = _build_date(*m.groups())
        if found:
            return found
    return None


def find_companion(notes: Optional[str]) -> Optional[str]:
    lowered = normalize_text(notes)
    for name in COMPANIONS:
        if f"with {name.lower()}" in lowered:
            return name
    return None
