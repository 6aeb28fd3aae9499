"""
Scoring Logic for Entity Resolution (v1).

Responsibilities:
- Compute a deterministic heuristic match score between a canonical movie
  and a viewing-log row.
- Emit the ordered list of reasons behind the score.

Non-Responsibilities:
- No database access.
- No candidate selection.
- No threshold decisions.

Invariant:
Given identical inputs, this module must always return
the same score and explanation.

Title, director and year each contribute at most one rule. The sum is not
capped; it is only used for ranking and threshold comparison.
"""

import math
from dataclasses import dataclass, field
from typing import List

from moviematch.models import CanonicalRecord, ExternalRecord
from moviematch.normalize import normalize_director, normalize_title

from .features import contains_either, round_half_up, word_overlap

EXACT_TITLE_POINTS = 100
PARTIAL_TITLE_POINTS = 80
WORD_OVERLAP_WEIGHT = 60
WORD_OVERLAP_MIN = 0.5
EXACT_DIRECTOR_POINTS = 50
PARTIAL_DIRECTOR_POINTS = 30
EXACT_YEAR_POINTS = 30
CLOSE_YEAR_POINTS = 15


@dataclass
class ScoreResult:
    score: int = 0
    reasons: List[str] = field(default_factory=list)

    def add(self, points: int, reason: str):
        self.score += points
        self.reasons.append(reason)


def _score_title(canonical: CanonicalRecord, external: ExternalRecord, result: ScoreResult):
    movie_title = normalize_title(canonical.title)
    log_title = normalize_title(external.title)

    if movie_title == log_title:
        result.add(EXACT_TITLE_POINTS, "Exact title match")
    elif contains_either(movie_title, log_title):
        result.add(PARTIAL_TITLE_POINTS, "Partial title match")
    else:
        ratio = word_overlap(movie_title, log_title)
        if ratio > WORD_OVERLAP_MIN:
            result.add(
                math.floor(ratio * WORD_OVERLAP_WEIGHT),
                f"Title similarity: {round_half_up(ratio * 100)}%",
            )


def _score_director(canonical: CanonicalRecord, external: ExternalRecord, result: ScoreResult):
    if not canonical.director or not external.director:
        return
    movie_director = normalize_director(canonical.director)
    log_director = normalize_director(external.director)

    if movie_director == log_director:
        result.add(EXACT_DIRECTOR_POINTS, "Exact director match")
    elif contains_either(movie_director, log_director):
        result.add(PARTIAL_DIRECTOR_POINTS, "Partial director match")


def _score_year(canonical: CanonicalRecord, external: ExternalRecord, result: ScoreResult):
    movie_year = canonical.year_value
    log_year = external.year_value
    if movie_year is None or log_year is None:
        return

    if movie_year == log_year:
        result.add(EXACT_YEAR_POINTS, "Year match")
    elif abs(movie_year - log_year) <= 1:
        result.add(CLOSE_YEAR_POINTS, "Year close match")


def score_pair(canonical: CanonicalRecord, external: ExternalRecord) -> ScoreResult:
    """Heuristic score and reasons for one (canonical, external) pair."""
    result = ScoreResult()
    _score_title(canonical, external, result)
    _score_director(canonical, external, result)
    _score_year(canonical, external, result)
    return result
