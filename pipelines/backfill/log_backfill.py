"""
Viewing-Log Backfill Pipeline.

Responsibilities:
- Match an exported viewing log against canonical movies that have no
  log linkage yet.
- Dispose of the ranked candidates: auto-apply those at or above the
  approval threshold, leave the rest for manual review.
- Produce the run report.

Non-Responsibilities:
- No scoring or assignment logic (see entity_resolution).
- No SQL; all writes go through the movies repository.

Invariant:
Each accepted candidate is persisted in its own transaction. A failed
candidate is rolled back and reported; it never stops the batch. A dry run
never writes and reports the same counts a live run would.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from moviematch.config import RunConfig
from moviematch.errors import MovieNotFound, PersistenceFailure
from moviematch.log_reader import LogBatch, load_external_records
from moviematch.logger import get_logger
from moviematch.models import ExternalRecord, MatchAnalysis, MatchCandidate
from moviematch.throttle import CancelToken
from pipelines.entity_resolution.candidate_selector import select_unclaimed_rows, select_unlinked
from pipelines.entity_resolution.mismatch import analyze
from pipelines.entity_resolution.resolver import assign_matches
from storage.repositories.movies import MovieRepository, to_canonical

logger = get_logger()


@dataclass
class DispositionSummary:
    auto_applied: int = 0
    manual_review: int = 0
    failed: int = 0
    cancelled: bool = False
    failures: List[Dict[str, Any]] = field(default_factory=list)


def dispose(
    candidates: Sequence[MatchCandidate],
    threshold: int,
    dry_run: bool = True,
    repository: Optional[MovieRepository] = None,
    cancel_token: Optional[CancelToken] = None,
) -> DispositionSummary:
    """
    Split candidates into auto-approved and manual-review.

    In a live run every candidate at or above the threshold is written via
    repository.apply_link in its own transaction.
    """
    summary = DispositionSummary()
    ordered = sorted(candidates, key=lambda c: c.match_score, reverse=True)

    if dry_run:
        summary.auto_applied = sum(1 for c in ordered if c.is_auto_approved(threshold))
        summary.manual_review = len(ordered) - summary.auto_applied
        return summary

    if repository is None:
        raise ValueError("A repository is required for a live run")

    for candidate in ordered:
        if not candidate.is_auto_approved(threshold):
            summary.manual_review += 1
            continue

        if cancel_token is not None and cancel_token.cancelled:
            summary.cancelled = True
            logger.warning("Backfill cancelled", applied=summary.auto_applied)
            break

        try:
            repository.apply_link(candidate.canonical.id, candidate.external, candidate.analysis)
        except (PersistenceFailure, MovieNotFound) as e:
            summary.failed += 1
            summary.failures.append({
                "canonicalId": candidate.canonical.id,
                "externalRowNumber": candidate.external.row_number,
                "error": str(e),
            })
            logger.record_disposition(False, type(e).__name__)
            logger.error(
                "Failed to apply match",
                movie_id=candidate.canonical.id,
                row=candidate.external.row_number,
                error=str(e),
            )
            continue

        summary.auto_applied += 1
        logger.record_disposition(True)
        logger.debug(
            "Applied match",
            movie_id=candidate.canonical.id,
            row=candidate.external.row_number,
            score=candidate.match_score,
        )

    return summary


def build_report(
    total_canonical: int,
    batch: LogBatch,
    candidates: Sequence[MatchCandidate],
    summary: DispositionSummary,
    config: RunConfig,
) -> Dict[str, Any]:
    return {
        "totalCanonical": total_canonical,
        "totalExternal": len(batch.records),
        "potentialMatches": len(candidates),
        "autoApplied": summary.auto_applied,
        "manualReview": summary.manual_review,
        "failed": summary.failed,
        "failures": list(summary.failures),
        "skippedRows": batch.skipped_count,
        "cancelled": summary.cancelled,
        "dryRun": config.dry_run,
        "matches": [c.to_report(config.auto_approve_threshold) for c in candidates],
    }


def reconcile(
    batch: LogBatch,
    repository: MovieRepository,
    config: RunConfig,
    cancel_token: Optional[CancelToken] = None,
) -> Dict[str, Any]:
    """Match an already-parsed batch against the stored collection."""
    snapshot = repository.load_canonical()
    unlinked = select_unlinked(snapshot)
    rows = select_unclaimed_rows(snapshot, batch.records)

    logger.info(
        f"Reconciling {len(rows)} log rows against {len(unlinked)} unlinked movies",
        dry_run=config.dry_run,
        threshold=config.auto_approve_threshold,
    )

    candidates = assign_matches(unlinked, rows)
    summary = dispose(
        candidates,
        threshold=config.auto_approve_threshold,
        dry_run=config.dry_run,
        repository=repository,
        cancel_token=cancel_token,
    )

    logger.info(
        f"Backfill done: {len(candidates)} candidates, {summary.auto_applied} applied, "
        f"{summary.manual_review} for review, {summary.failed} failed",
    )
    return build_report(len(unlinked), batch, candidates, summary, config)


def run_backfill(
    log_path: Path,
    repository: MovieRepository,
    config: RunConfig = RunConfig(),
    cancel_token: Optional[CancelToken] = None,
) -> Dict[str, Any]:
    """
    Read the viewing log and reconcile it with the collection.

    Raises:
        InputNotFound: If log_path does not exist (before anything is read)
    """
    batch = load_external_records(log_path, limit_rows=config.limit_rows, skip_rows=config.skip_rows)
    return reconcile(batch, repository, config, cancel_token)


def apply_manual_match(
    repository: MovieRepository,
    movie_id: int,
    external: ExternalRecord,
) -> Tuple[Dict[str, Any], MatchAnalysis]:
    """
    Link a movie to a log row chosen by a reviewer.

    The analysis is recomputed against the stored movie and written in the
    same transaction as the linkage.
    """
    movie = repository.get(movie_id)
    analysis = analyze(to_canonical(movie), external)
    movie = repository.apply_link(movie_id, external, analysis)
    logger.info("Manually linked movie", movie_id=movie_id, row=external.row_number)
    return {
        "id": movie.id,
        "title": movie.title,
        "csvRowNumber": movie.csv_row_number,
        "approvalStatus": movie.approval_status,
    }, analysis
