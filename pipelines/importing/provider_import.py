"""
Provider-Fallback Import Pipeline.

Responsibilities:
- Import fresh viewing-log rows by looking each title up with the metadata
  provider and analysing the hit against the row.
- Fall back to a minimal record built from the row alone when the lookup
  finds nothing or fails, flagged for manual review.
- Persist each row (movie, analysis, viewing entry) in its own transaction.

Non-Responsibilities:
- No matching against an existing collection (see backfill).
- No HTTP details (see moviematch.tmdb).

Invariant:
Rows are processed strictly one at a time, in order. Every provider call
waits on the rate limiter first. Provider failures never abort the run.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from moviematch.errors import PersistenceFailure, ProviderLookupFailure, RunCancelled
from moviematch.logger import get_logger
from moviematch.models import SEVERITY_HIGH, CanonicalRecord, ExternalRecord, MatchAnalysis
from moviematch.normalize import find_companion, find_log_date, parse_log_date, year_to_date
from moviematch.throttle import CancelToken, FixedIntervalLimiter, NoDelayLimiter
from moviematch.tmdb import ProviderMovie
from pipelines.entity_resolution.mismatch import analyze
from storage.repositories.movies import MovieRepository

logger = get_logger()

FALLBACK_CONFIDENCE_CAP = 30
FALLBACK_MESSAGE = "No match found - manual review required"


@dataclass
class ImportResult:
    success: bool
    row_number: int
    movie_title: str
    confidence_score: int = 0
    severity: str = SEVERITY_HIGH
    provider_match: Optional[Dict[str, Any]] = None
    movie_id: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "csvRowNumber": self.row_number,
            "movieTitle": self.movie_title,
            "confidenceScore": self.confidence_score,
            "severity": self.severity,
            "tmdbMatch": self.provider_match,
            "movieId": self.movie_id,
            "error": self.error,
        }


def fallback_record(external: ExternalRecord) -> CanonicalRecord:
    """Minimal canonical record built from the log row alone."""
    return CanonicalRecord(
        id=None,
        title=external.title or "Unknown Title",
        director=external.director,
        release_date=year_to_date(external.year),
    )


NO_MATCH = CanonicalRecord(id=None, title="")


def analyze_fallback(external: ExternalRecord) -> MatchAnalysis:
    """Analyse a row that found no provider match against an empty record."""
    return degrade_for_fallback(analyze(NO_MATCH, external))


def degrade_for_fallback(analysis: MatchAnalysis) -> MatchAnalysis:
    analysis.confidence_score = min(analysis.confidence_score, FALLBACK_CONFIDENCE_CAP)
    analysis.severity = SEVERITY_HIGH
    analysis.mismatches.insert(0, FALLBACK_MESSAGE)
    return analysis


class ProviderFallbackImporter:
    """
    Sequential importer for rows with no pre-existing canonical set.

    Args:
        provider: Object with lookup(title) -> ProviderMovie | None
        repository: Required when dry_run is False
        limiter: Paces provider calls (default: no delay)
        cancel_token: Checked before each provider call and each write
        dry_run: Analyse only, write nothing
    """

    def __init__(
        self,
        provider,
        repository: Optional[MovieRepository] = None,
        limiter: Optional[FixedIntervalLimiter] = None,
        cancel_token: Optional[CancelToken] = None,
        dry_run: bool = True,
    ):
        if not dry_run and repository is None:
            raise ValueError("A repository is required for a live import")
        self.provider = provider
        self.repository = repository
        self.limiter = limiter or NoDelayLimiter()
        self.cancel_token = cancel_token or CancelToken()
        self.dry_run = dry_run

    def _lookup(self, external: ExternalRecord) -> Optional[ProviderMovie]:
        self.cancel_token.raise_if_cancelled()
        self.limiter.wait()
        logger.record_lookup_attempt()
        try:
            movie = self.provider.lookup(external.title)
        except ProviderLookupFailure as e:
            logger.record_lookup_failure(type(e).__name__)
            logger.warning("Provider lookup failed, using fallback", row=external.row_number, error=str(e))
            return None

        if movie is None:
            logger.record_lookup_failure("NoResults")
            logger.info("No provider match", row=external.row_number, title=external.title)
        else:
            logger.record_lookup_success()
        return movie

    def import_row(self, external: ExternalRecord) -> ImportResult:
        movie = self._lookup(external)

        if movie is not None:
            canonical = movie.to_canonical()
            analysis = analyze(canonical, external)
            match = {
                "title": movie.title,
                "release_date": movie.release_date.isoformat() if movie.release_date else None,
                "tmdb_id": movie.tmdb_id,
            }
        else:
            canonical = fallback_record(external)
            analysis = analyze_fallback(external)
            match = None

        result = ImportResult(
            success=True,
            row_number=external.row_number,
            movie_title=external.title,
            confidence_score=analysis.confidence_score,
            severity=analysis.severity,
            provider_match=match,
        )
        if self.dry_run:
            return result

        self.cancel_token.raise_if_cancelled()
        created = self.repository.create_imported(
            canonical,
            external,
            analysis,
            overview=movie.overview if movie else f"Movie imported from viewing log: {external.notes or 'No description available'}",
            original_title=movie.original_title if movie else None,
            date_watched=parse_log_date(external.completed) or find_log_date(external.notes),
            buddy_watched_with=find_companion(external.notes),
        )
        result.movie_id = created.id
        return result

    def run(self, records: Iterable[ExternalRecord]) -> Dict[str, Any]:
        records = list(records)
        results: List[ImportResult] = []
        stats = {"total": len(records), "successful": 0, "failedLookup": 0, "errors": 0}
        cancelled = False

        for external in records:
            try:
                result = self.import_row(external)
            except RunCancelled:
                cancelled = True
                logger.warning("Import cancelled", processed=len(results))
                break
            except PersistenceFailure as e:
                logger.record_disposition(False, type(e).__name__)
                logger.error("Import failed", row=external.row_number, error=str(e))
                results.append(ImportResult(
                    success=False,
                    row_number=external.row_number,
                    movie_title=external.title,
                    error=str(e),
                ))
                stats["errors"] += 1
                continue

            if not self.dry_run:
                logger.record_disposition(True)
            results.append(result)
            if result.provider_match is not None:
                stats["successful"] += 1
            else:
                stats["failedLookup"] += 1

        logger.info("Import completed", **stats)
        return {
            "results": [r.to_dict() for r in results],
            "stats": stats,
            "cancelled": cancelled,
            "dryRun": self.dry_run,
        }
