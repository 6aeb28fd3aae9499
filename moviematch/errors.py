"""
Error types raised by the reconciliation engine.

Only InputNotFound and LogFormatError are fatal to a run. The others are
caught at the per-row or per-candidate boundary and counted in the report.
"""


class MovieMatchError(Exception):
    """Base class for moviematch errors."""
    pass


class InputNotFound(MovieMatchError):
    """Raised when the viewing-log file does not exist."""
    pass


class LogFormatError(MovieMatchError):
    """Raised when the viewing-log header cannot be understood."""
    pass


class RowParseError(MovieMatchError):
    """Raised for a single malformed log row."""

    def __init__(self, row_number: int, reasons):
        self.row_number = row_number
        self.reasons = list(reasons)
        super().__init__(f"Row {row_number}: {'; '.join(self.reasons)}")


class ProviderLookupFailure(MovieMatchError):
    """Raised when the metadata provider cannot answer a lookup."""
    pass


class PersistenceFailure(MovieMatchError):
    """Raised when a single candidate's transaction fails."""
    pass


class MovieNotFound(MovieMatchError):
    """Raised when a canonical movie id does not exist."""
    pass


class RunCancelled(MovieMatchError):
    """Raised when a run is cancelled between steps."""
    pass
