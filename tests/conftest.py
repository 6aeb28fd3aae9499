"""
Pytest configuration and shared fixtures.
"""

import pytest
from datetime import date
from pathlib import Path

from moviematch.database import Movie, init_database, get_session
from moviematch.models import CanonicalRecord, ExternalRecord
from storage.repositories.movies import MovieRepository


def make_external(row_number=2, title="Inception", year="2010", director="Christopher Nolan",
                  notes="", completed=None):
    return ExternalRecord(
        row_number=row_number,
        title=title,
        year=year,
        director=director,
        notes=notes,
        completed=completed,
    )


def make_canonical(id=1, title="Inception", director="Christopher Nolan",
                   release_date=date(2010, 7, 16), external_row_number=None):
    return CanonicalRecord(
        id=id,
        title=title,
        director=director,
        release_date=release_date,
        external_row_number=external_row_number,
    )


@pytest.fixture
def inception_external() -> ExternalRecord:
    return make_external()


@pytest.fixture
def inception_canonical() -> CanonicalRecord:
    return make_canonical()


@pytest.fixture
def sample_log_text() -> str:
    """Viewing log export with a header, a blank line and a title-less row."""
    return "\n".join([
        "#,Yr,Title,Dir.,Notes,Completed",
        "1,2010,Inception,Christopher Nolan,with Calen at the Dome,1.5.24",
        "",
        "2,1999,The Matrix,Lana Wachowski,,2.14.2024",
        "3,2001,,Nobody,missing title,",
        "4,1994,Pulp Fiction,Quentin Tarantino,rewatch 3.3.23,",
        "5,2019",
        "",
    ])


@pytest.fixture
def sample_log_file(tmp_path, sample_log_text) -> Path:
    path = tmp_path / "movies.csv"
    path.write_text(sample_log_text, encoding="utf-8")
    return path


@pytest.fixture
def db_path(tmp_path) -> Path:
    path = tmp_path / "movies.db"
    init_database(path)
    return path


@pytest.fixture
def db_session(db_path):
    session = get_session(db_path)
    yield session
    session.close()


@pytest.fixture
def repository(db_session) -> MovieRepository:
    return MovieRepository(db_session)


@pytest.fixture
def seeded_movies(db_session):
    """Three collection movies without log linkage, plus one already linked."""
    movies = [
        Movie(title="Inception", director="Christopher Nolan", release_date=date(2010, 7, 16), tmdb_id=27205),
        Movie(title="The Matrix", director="Lana Wachowski, Lilly Wachowski", release_date=date(1999, 3, 31), tmdb_id=603),
        Movie(title="Pulp Fiction", director="Quentin Tarantino", release_date=date(1994, 10, 14), tmdb_id=680),
        Movie(title="Heat", director="Michael Mann", release_date=date(1995, 12, 15), tmdb_id=949,
              csv_row_number=40, csv_title="Heat", csv_director="Michael Mann", csv_year="1995"),
    ]
    db_session.add_all(movies)
    db_session.commit()
    return movies
