"""
Tests for database.py - SQLite schema and sessions.
"""

from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError

from moviematch.database import (
    APPROVAL_APPROVED,
    Movie,
    MovieMatchAnalysis,
    UserMovie,
    get_session,
    init_database,
)


class TestDatabaseInit:
    """Test database initialization."""

    def test_init_creates_database_file(self, tmp_path):
        """Test that init_database creates the database file."""
        db_path = tmp_path / "test.db"
        assert not db_path.exists()

        init_database(db_path)

        assert db_path.exists()

    def test_init_creates_tables(self, tmp_path):
        """Test that init_database creates all tables."""
        db_path = tmp_path / "test.db"
        init_database(db_path)

        session = get_session(db_path)
        assert session.query(Movie).count() == 0
        assert session.query(MovieMatchAnalysis).count() == 0
        assert session.query(UserMovie).count() == 0
        session.close()

    def test_init_creates_parent_directories(self, tmp_path):
        """Test that init_database creates parent directories if missing."""
        db_path = tmp_path / "nested" / "dir" / "test.db"
        assert not db_path.parent.exists()

        init_database(db_path)

        assert db_path.exists()

    def test_init_is_idempotent(self, db_path):
        init_database(db_path)
        init_database(db_path)


class TestMovieModel:
    """Test the Movie model and its relationships."""

    def test_defaults(self, db_session):
        movie = Movie(title="Heat", release_date=date(1995, 12, 15))
        db_session.add(movie)
        db_session.commit()

        assert movie.id is not None
        assert movie.approval_status == APPROVAL_APPROVED
        assert movie.csv_row_number is None
        assert movie.created_at is not None
        assert movie.updated_at is not None

    def test_tmdb_id_unique(self, db_session):
        db_session.add(Movie(title="Heat", tmdb_id=949))
        db_session.commit()

        db_session.add(Movie(title="Heat (copy)", tmdb_id=949))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_many_movies_without_tmdb_id(self, db_session):
        db_session.add_all([Movie(title="A"), Movie(title="B")])
        db_session.commit()
        assert db_session.query(Movie).filter(Movie.tmdb_id.is_(None)).count() == 2

    def test_match_analysis_relationship(self, db_session):
        movie = Movie(title="Inception")
        movie.match_analysis = MovieMatchAnalysis(
            confidence_score=87,
            severity="low",
            mismatches=['Title mismatch: "Inceptoin" vs "Inception"'],
        )
        db_session.add(movie)
        db_session.commit()

        stored = db_session.query(MovieMatchAnalysis).one()
        assert stored.movie_id == movie.id
        assert stored.mismatches == ['Title mismatch: "Inceptoin" vs "Inception"']
        assert stored.analysis_date is not None

    def test_one_analysis_per_movie(self, db_session):
        movie = Movie(title="Inception")
        db_session.add(movie)
        db_session.commit()

        db_session.add(MovieMatchAnalysis(movie_id=movie.id, confidence_score=50, severity="medium"))
        db_session.commit()
        db_session.add(MovieMatchAnalysis(movie_id=movie.id, confidence_score=60, severity="medium"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_viewings_cascade(self, db_session):
        movie = Movie(title="Inception")
        movie.viewings.append(UserMovie(date_watched=date(2024, 1, 5), buddy_watched_with="Calen"))
        db_session.add(movie)
        db_session.commit()

        assert db_session.query(UserMovie).one().movie_id == movie.id

        db_session.delete(movie)
        db_session.commit()
        assert db_session.query(UserMovie).count() == 0
