"""
Tests for the viewing-log backfill: disposition, reporting and manual links.
"""

import pytest

from moviematch.config import RunConfig
from moviematch.database import APPROVAL_APPROVED, APPROVAL_PENDING, Movie, MovieMatchAnalysis
from moviematch.errors import InputNotFound, MovieNotFound, PersistenceFailure
from moviematch.log_reader import load_external_records
from moviematch.throttle import CancelToken
from pipelines.backfill.log_backfill import apply_manual_match, dispose, reconcile, run_backfill
from pipelines.entity_resolution.resolver import assign_matches
from storage.repositories.movies import MovieRepository

from conftest import make_external


class FailingRepository(MovieRepository):
    """Repository whose apply_link fails for selected movie ids."""

    def __init__(self, session, fail_ids):
        super().__init__(session)
        self.fail_ids = set(fail_ids)

    def apply_link(self, movie_id, external, analysis):
        if movie_id in self.fail_ids:
            raise PersistenceFailure(f"Could not link movie {movie_id}: disk full")
        return super().apply_link(movie_id, external, analysis)


class CancellingRepository(MovieRepository):
    """Repository that cancels the run after its first successful write."""

    def __init__(self, session, token):
        super().__init__(session)
        self.token = token

    def apply_link(self, movie_id, external, analysis):
        movie = super().apply_link(movie_id, external, analysis)
        self.token.cancel()
        return movie


def _candidates(repository, log_file):
    batch = load_external_records(log_file)
    return assign_matches(repository.load_canonical(), batch.records)


def _linked_ids(db_session):
    return {m.id for m in db_session.query(Movie).filter(Movie.csv_row_number.isnot(None))}


class TestDispose:
    def test_dry_run_counts(self, repository, seeded_movies, sample_log_file):
        candidates = _candidates(repository, sample_log_file)

        summary = dispose(candidates, threshold=170, dry_run=True)

        assert summary.auto_applied == 2
        assert summary.manual_review == 1
        assert summary.failed == 0

    def test_dry_run_writes_nothing(self, repository, db_session, seeded_movies, sample_log_file):
        candidates = _candidates(repository, sample_log_file)
        before = _linked_ids(db_session)

        dispose(candidates, threshold=150, dry_run=True, repository=repository)

        assert _linked_ids(db_session) == before
        assert db_session.query(MovieMatchAnalysis).count() == 0

    def test_live_counts_match_dry_run(self, repository, seeded_movies, sample_log_file):
        candidates = _candidates(repository, sample_log_file)

        dry = dispose(candidates, threshold=170, dry_run=True)
        live = dispose(candidates, threshold=170, dry_run=False, repository=repository)

        assert (live.auto_applied, live.manual_review) == (dry.auto_applied, dry.manual_review)

    def test_live_writes_auto_approved_only(self, repository, db_session, seeded_movies, sample_log_file):
        inception, matrix, pulp, heat = seeded_movies
        candidates = _candidates(repository, sample_log_file)

        dispose(candidates, threshold=170, dry_run=False, repository=repository)

        db_session.expire_all()
        assert inception.csv_row_number == 2
        assert inception.approval_status == APPROVAL_PENDING
        assert pulp.csv_row_number == 5
        # scored 160, below the threshold
        assert matrix.csv_row_number is None
        assert matrix.approval_status == APPROVAL_APPROVED
        assert db_session.query(MovieMatchAnalysis).count() == 2

    def test_failure_is_isolated(self, db_session, seeded_movies, sample_log_file):
        inception, matrix, pulp, heat = seeded_movies
        repo = FailingRepository(db_session, fail_ids={inception.id})
        candidates = _candidates(repo, sample_log_file)

        summary = dispose(candidates, threshold=150, dry_run=False, repository=repo)

        assert summary.auto_applied == 2
        assert summary.failed == 1
        assert summary.failures == [{
            "canonicalId": inception.id,
            "externalRowNumber": 2,
            "error": f"Could not link movie {inception.id}: disk full",
        }]
        db_session.expire_all()
        assert inception.csv_row_number is None
        assert matrix.csv_row_number == 3
        assert pulp.csv_row_number == 5

    def test_cancel_before_start(self, repository, db_session, seeded_movies, sample_log_file):
        token = CancelToken()
        token.cancel()
        candidates = _candidates(repository, sample_log_file)

        summary = dispose(candidates, threshold=150, dry_run=False, repository=repository, cancel_token=token)

        assert summary.cancelled
        assert summary.auto_applied == 0
        assert db_session.query(MovieMatchAnalysis).count() == 0

    def test_cancel_between_candidates(self, db_session, seeded_movies, sample_log_file):
        token = CancelToken()
        repo = CancellingRepository(db_session, token)
        candidates = _candidates(repo, sample_log_file)

        summary = dispose(candidates, threshold=150, dry_run=False, repository=repo, cancel_token=token)

        assert summary.cancelled
        assert summary.auto_applied == 1
        assert db_session.query(MovieMatchAnalysis).count() == 1

    def test_live_requires_repository(self):
        with pytest.raises(ValueError):
            dispose([], threshold=150, dry_run=False)


class TestRunBackfill:
    def test_report(self, repository, seeded_movies, sample_log_file):
        report = run_backfill(sample_log_file, repository, RunConfig(dry_run=True))

        assert report["totalCanonical"] == 3
        assert report["totalExternal"] == 3
        assert report["skippedRows"] == 2
        assert report["potentialMatches"] == 3
        assert report["autoApplied"] == 3
        assert report["manualReview"] == 0
        assert report["failed"] == 0
        assert report["dryRun"] is True
        assert report["cancelled"] is False
        assert [m["matchScore"] for m in report["matches"]] == [180, 180, 160]

    def test_inception_match_detail(self, repository, seeded_movies, sample_log_file):
        report = run_backfill(sample_log_file, repository)
        inception = next(m for m in report["matches"] if m["canonicalTitle"] == "Inception")

        assert inception["externalRowNumber"] == 2
        assert inception["matchScore"] == 180
        assert inception["confidenceScore"] == 100
        assert inception["severity"] == "low"
        assert inception["mismatches"] == []
        assert inception["autoApproved"] is True

    def test_second_live_run_finds_nothing(self, repository, seeded_movies, sample_log_file):
        config = RunConfig(dry_run=False)
        first = run_backfill(sample_log_file, repository, config)
        second = run_backfill(sample_log_file, repository, config)

        assert first["autoApplied"] == 3
        assert second["totalCanonical"] == 0
        assert second["potentialMatches"] == 0
        assert second["autoApplied"] == 0

    def test_linked_row_is_not_reused(self, repository, db_session, seeded_movies, sample_log_file):
        # Heat already owns row 5, so Pulp Fiction has nothing to match
        heat = seeded_movies[3]
        heat.csv_row_number = 5
        db_session.commit()

        report = run_backfill(sample_log_file, repository)

        assert report["totalExternal"] == 3
        assert "Pulp Fiction" not in {m["canonicalTitle"] for m in report["matches"]}

    def test_limit_rows(self, repository, seeded_movies, sample_log_file):
        report = run_backfill(sample_log_file, repository, RunConfig(limit_rows=1))
        assert report["totalExternal"] == 1
        assert report["potentialMatches"] == 1

    def test_missing_input(self, repository, tmp_path):
        with pytest.raises(InputNotFound):
            run_backfill(tmp_path / "missing.csv", repository)

    def test_reconcile_empty_batch(self, repository, seeded_movies):
        from moviematch.log_reader import LogBatch

        report = reconcile(LogBatch(), repository, RunConfig())
        assert report["potentialMatches"] == 0
        assert report["matches"] == []


class TestManualMatch:
    def test_links_and_recomputes_analysis(self, repository, db_session, seeded_movies):
        inception = seeded_movies[0]

        movie, analysis = apply_manual_match(repository, inception.id, make_external(row_number=9, year="2007"))

        assert movie == {
            "id": inception.id,
            "title": "Inception",
            "csvRowNumber": 9,
            "approvalStatus": APPROVAL_PENDING,
        }
        assert analysis.confidence_score == 85
        assert analysis.mismatches == ["Year mismatch: 2007 vs 2010"]
        stored = db_session.query(MovieMatchAnalysis).filter_by(movie_id=inception.id).one()
        assert stored.confidence_score == 85

    def test_unknown_movie(self, repository):
        with pytest.raises(MovieNotFound):
            apply_manual_match(repository, 999, make_external())
