"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for the movie collection, its viewing-log
linkage and the match analysis records.
"""

from datetime import datetime
from pathlib import Path
from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

Base = declarative_base()

APPROVAL_PENDING = "pending"
APPROVAL_APPROVED = "approved"


class Movie(Base):
    """Canonical movie metadata, optionally linked to a viewing-log row."""

    __tablename__ = "movies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tmdb_id = Column(Integer, unique=True, nullable=True)
    title = Column(String, nullable=False)
    original_title = Column(String, nullable=True)
    director = Column(String, nullable=True)
    release_date = Column(Date, nullable=True)
    overview = Column(Text, nullable=True)

    # Viewing-log linkage, written when a match is accepted
    csv_row_number = Column(Integer, nullable=True, index=True)
    csv_title = Column(String, nullable=True)
    csv_director = Column(String, nullable=True)
    csv_year = Column(String, nullable=True)
    csv_notes = Column(Text, nullable=True)
    approval_status = Column(String, nullable=False, default=APPROVAL_APPROVED)

    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    match_analysis = relationship(
        "MovieMatchAnalysis", back_populates="movie", uselist=False, cascade="all, delete-orphan"
    )
    viewings = relationship("UserMovie", back_populates="movie", cascade="all, delete-orphan")


class MovieMatchAnalysis(Base):
    """Confidence analysis for a movie's viewing-log linkage (1:1 by movie)."""

    __tablename__ = "movie_match_analysis"

    id = Column(Integer, primary_key=True, autoincrement=True)
    movie_id = Column(Integer, ForeignKey("movies.id"), nullable=False, unique=True)
    confidence_score = Column(Integer, nullable=False)
    severity = Column(String, nullable=False)
    mismatches = Column(JSON, nullable=False, default=list)
    title_similarity = Column(Integer, nullable=True)
    director_similarity = Column(Integer, nullable=True)
    year_difference = Column(Integer, nullable=True)
    analysis_date = Column(DateTime, nullable=False, default=datetime.now)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    movie = relationship("Movie", back_populates="match_analysis")


class UserMovie(Base):
    """Personal viewing entry created for imported log rows."""

    __tablename__ = "user_movies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    movie_id = Column(Integer, ForeignKey("movies.id"), nullable=False, index=True)
    date_watched = Column(Date, nullable=True)
    buddy_watched_with = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    movie = relationship("Movie", back_populates="viewings")


def sqlite_url(db_path: Path) -> str:
    return f"sqlite:///{db_path}"


def init_database(db_path: Path) -> None:
    """
    Create the database file (and parent directories) and any missing tables.

    Safe to call on an existing database; existing tables are left as-is.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(sqlite_url(db_path))
    Base.metadata.create_all(engine)
    engine.dispose()


def get_session(db_path: Path):
    """
    Open a session on the SQLite database at db_path.

    The caller owns the session and must close it.
    """
    Session = sessionmaker(bind=create_engine(sqlite_url(db_path)))
    return Session()
