"""
Movies Repository.

Responsibilities:
- Load the canonical snapshot for a run.
- Transaction-safe writes of accepted matches and imported movies.

Non-Responsibilities:
- No business logic.
- No entity resolution.
- No scoring.

Invariant:
Repositories must not encode domain decisions.
Every write method commits or rolls back its own transaction.
"""

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from moviematch.database import (
    APPROVAL_PENDING,
    Movie,
    MovieMatchAnalysis,
    UserMovie,
)
from moviematch.errors import MovieNotFound, PersistenceFailure
from moviematch.models import CanonicalRecord, ExternalRecord, MatchAnalysis


def to_canonical(movie: Movie) -> CanonicalRecord:
    return CanonicalRecord(
        id=movie.id,
        title=movie.title,
        director=movie.director,
        release_date=movie.release_date,
        external_row_number=movie.csv_row_number,
        tmdb_id=movie.tmdb_id,
    )


class MovieRepository:
    def __init__(self, session):
        self.session = session

    def load_canonical(self) -> List[CanonicalRecord]:
        """Every movie as an immutable snapshot, ordered by id."""
        return [to_canonical(m) for m in self.session.query(Movie).order_by(Movie.id).all()]

    def load_linked(self) -> List[Movie]:
        return (
            self.session.query(Movie)
            .filter(Movie.csv_row_number.isnot(None))
            .order_by(Movie.id)
            .all()
        )

    def get(self, movie_id: int) -> Movie:
        movie = self.session.get(Movie, movie_id)
        if movie is None:
            raise MovieNotFound(f"Movie not found: {movie_id}")
        return movie

    def _upsert_analysis(self, movie_id: int, analysis: MatchAnalysis) -> MovieMatchAnalysis:
        record = self.session.query(MovieMatchAnalysis).filter_by(movie_id=movie_id).first()
        now = datetime.now()
        if record is None:
            record = MovieMatchAnalysis(movie_id=movie_id, created_at=now)
            self.session.add(record)
        record.confidence_score = analysis.confidence_score
        record.severity = analysis.severity
        record.mismatches = list(analysis.mismatches)
        record.title_similarity = analysis.title_similarity
        record.director_similarity = analysis.director_similarity
        record.year_difference = analysis.year_difference
        record.analysis_date = now
        record.updated_at = now
        return record

    def apply_link(self, movie_id: int, external: ExternalRecord, analysis: MatchAnalysis) -> Movie:
        """
        Write log linkage onto a movie and upsert its analysis in one
        transaction.

        Raises:
            MovieNotFound: If the movie does not exist
            PersistenceFailure: If the transaction fails
        """
        try:
            movie = self.get(movie_id)
            movie.csv_row_number = external.row_number
            movie.csv_title = external.title or None
            movie.csv_director = external.director or None
            movie.csv_year = external.year or None
            movie.csv_notes = external.notes or None
            movie.approval_status = APPROVAL_PENDING
            self._upsert_analysis(movie_id, analysis)
            self.session.commit()
            return movie
        except MovieNotFound:
            self.session.rollback()
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceFailure(f"Could not link movie {movie_id}: {e}") from e

    def create_imported(
        self,
        canonical: CanonicalRecord,
        external: ExternalRecord,
        analysis: MatchAnalysis,
        overview: Optional[str] = None,
        original_title: Optional[str] = None,
        date_watched: Optional[date] = None,
        buddy_watched_with: Optional[str] = None,
    ) -> Movie:
        """Create a movie, its analysis and a viewing entry in one transaction."""
        try:
            movie = Movie(
                tmdb_id=canonical.tmdb_id,
                title=canonical.title,
                original_title=original_title,
                director=canonical.director,
                release_date=canonical.release_date,
                overview=overview,
                csv_row_number=external.row_number,
                csv_title=external.title or None,
                csv_director=external.director or None,
                csv_year=external.year or None,
                csv_notes=external.notes or None,
                approval_status=APPROVAL_PENDING,
            )
            self.session.add(movie)
            self.session.flush()
            self._upsert_analysis(movie.id, analysis)
            self.session.add(
                UserMovie(
                    movie_id=movie.id,
                    date_watched=date_watched,
                    buddy_watched_with=buddy_watched_with,
                    notes=external.notes or None,
                )
            )
            self.session.commit()
            return movie
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceFailure(f"Could not import row {external.row_number}: {e}") from e
