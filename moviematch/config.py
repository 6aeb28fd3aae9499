"""
Run configuration and environment settings.

RunConfig mirrors the options a caller passes to a single reconciliation run.
Settings collects process-wide values read from the environment (populated
from .env by env.load_env()).
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_AUTO_APPROVE_THRESHOLD = 150
DEFAULT_DB_PATH = "data/movies.db"
DEFAULT_REQUEST_TIMEOUT = 10.0
DEFAULT_IMPORT_DELAY = 0.1


@dataclass(frozen=True)
class RunConfig:
    dry_run: bool = True
    auto_approve_threshold: int = DEFAULT_AUTO_APPROVE_THRESHOLD
    limit_rows: Optional[int] = None
    skip_rows: int = 0

    def __post_init__(self):
        if self.skip_rows < 0:
            raise ValueError("skip_rows must be >= 0")
        if self.limit_rows is not None and self.limit_rows < 0:
            raise ValueError("limit_rows must be >= 0 or None")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    tmdb_api_key: Optional[str] = None
    db_path: Path = Path(DEFAULT_DB_PATH)
    log_level: str = "INFO"
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    import_delay: float = DEFAULT_IMPORT_DELAY

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            tmdb_api_key=os.getenv("TMDB_API_KEY") or None,
            db_path=Path(os.getenv("MOVIEMATCH_DB", DEFAULT_DB_PATH)),
            log_level=os.getenv("MOVIEMATCH_LOG_LEVEL", "INFO"),
            request_timeout=_float_env("MOVIEMATCH_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            import_delay=_float_env("MOVIEMATCH_IMPORT_DELAY", DEFAULT_IMPORT_DELAY),
        )
