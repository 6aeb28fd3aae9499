"""
Structured logging for moviematch runs.

One process-wide logger writes human-readable lines to stdout and a dated
file under logs/, appending keyword context as JSON. It also keeps the run
counters (provider calls, lookup outcomes, disposition outcomes) that the
CLI prints at the end of a backfill or import.
"""

import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=DATE_FORMAT))
    return handler


def _empty_metrics() -> Dict:
    return {
        "provider_calls": 0,
        "lookups_attempted": 0,
        "lookups_successful": 0,
        "lookups_failed": 0,
        "dispositions_applied": 0,
        "dispositions_failed": 0,
        "errors_by_type": {},
    }


class StructuredLogger:
    """
    Logger with console and file output plus reconciliation metrics.

    Args:
        name: Logger name
        level: Console level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the dated log file (default: logs/)
        enable_file: Write to the log file (always at DEBUG)
        enable_console: Write to stdout
    """

    def __init__(
        self,
        name: str = "moviematch",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
        enable_console: bool = True,
    ):
        numeric_level = getattr(logging, level.upper())

        self.logger = logging.getLogger(name)
        self.logger.setLevel(numeric_level)
        self.logger.handlers.clear()
        self.logger.propagate = False
        self.metrics = _empty_metrics()

        if enable_console:
            self.logger.addHandler(
                _handler(logging.StreamHandler(sys.stdout), numeric_level, CONSOLE_FORMAT)
            )

        if enable_file:
            log_dir = log_dir or Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)
            log_file = log_dir / f"moviematch_{datetime.now().strftime('%Y%m%d')}.log"
            self.logger.addHandler(
                _handler(logging.FileHandler(log_file, encoding="utf-8"), logging.DEBUG, FILE_FORMAT)
            )

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        self._log(logging.CRITICAL, message, kwargs)

    # Run counters

    def record_provider_call(self):
        """One HTTP request to the metadata provider, retries included."""
        self.metrics["provider_calls"] += 1

    def record_lookup_attempt(self):
        self.metrics["lookups_attempted"] += 1

    def record_lookup_success(self):
        self.metrics["lookups_successful"] += 1

    def record_lookup_failure(self, error_type: str):
        """A lookup that ended in the fallback record."""
        self.metrics["lookups_failed"] += 1
        self._count_error(error_type)

    def record_disposition(self, applied: bool, error_type: Optional[str] = None):
        """Outcome of one persistence transaction."""
        if applied:
            self.metrics["dispositions_applied"] += 1
            return
        self.metrics["dispositions_failed"] += 1
        self._count_error(error_type or "PersistenceFailure")

    def _count_error(self, error_type: str):
        errors = self.metrics["errors_by_type"]
        errors[error_type] = errors.get(error_type, 0) + 1

    def get_metrics(self) -> dict:
        """Snapshot of the counters, with the lookup success rate when known."""
        snapshot = dict(self.metrics, errors_by_type=dict(self.metrics["errors_by_type"]))
        if snapshot["lookups_attempted"]:
            snapshot["lookup_success_rate"] = round(
                snapshot["lookups_successful"] / snapshot["lookups_attempted"], 3
            )
        return snapshot

    def log_metrics_summary(self):
        m = self.get_metrics()

        self.info("=== Reconciliation Run Metrics ===")
        self.info(f"Provider Calls: {m['provider_calls']}")
        if m["lookups_attempted"]:
            self.info(
                f"Lookups: {m['lookups_successful']}/{m['lookups_attempted']} "
                f"({m['lookup_success_rate'] * 100:.1f}% success)"
            )
        self.info(f"Dispositions: {m['dispositions_applied']} applied, {m['dispositions_failed']} failed")

        if m["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in sorted(m["errors_by_type"].items()):
                self.info(f"  {error_type}: {count}")


_global_logger: Optional[StructuredLogger] = None


def get_logger(name: str = "moviematch", level: Optional[str] = None, **kwargs) -> StructuredLogger:
    """
    Return the process-wide logger, creating it on first use.

    The level defaults to $MOVIEMATCH_LOG_LEVEL, then INFO. Arguments are
    ignored once the logger exists.
    """
    global _global_logger

    if _global_logger is None:
        level = level or os.getenv("MOVIEMATCH_LOG_LEVEL", "INFO")
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)
    return _global_logger


def reset_logger():
    """Drop the process-wide logger so the next get_logger() builds a fresh one."""
    global _global_logger
    _global_logger = None
