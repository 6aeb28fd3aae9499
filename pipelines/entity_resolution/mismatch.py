"""
Mismatch Analysis for Entity Resolution.

Responsibilities:
- Compute a 0-100 confidence score for a proposed pairing by subtracting
  weighted penalties from 100.
- Explain every deduction with a human-readable mismatch message.

Non-Responsibilities:
- No ranking (see scoring.py).
- No assignment or persistence.

Invariant:
confidence_score is clamped to [0, 100] and severity is derived from the
clamped score only.
"""

from moviematch.models import CanonicalRecord, ExternalRecord, MatchAnalysis, severity_for

from .features import director_decision, round_half_up, similarity, year_difference

SIMILARITY_FLOOR = 80
TITLE_WEIGHT = 0.6
DIRECTOR_WEIGHT = 0.3
YEAR_PENALTY_PER_YEAR = 5
YEAR_PENALTY_CAP = 30
YEAR_TOLERANCE = 1


def analyze(canonical: CanonicalRecord, external: ExternalRecord) -> MatchAnalysis:
    mismatches = []
    confidence = 100.0

    title_similarity = similarity(external.title, canonical.title)
    if title_similarity < SIMILARITY_FLOOR:
        mismatches.append(f'Title mismatch: "{external.title}" vs "{canonical.title}"')
        confidence -= (100 - title_similarity) * TITLE_WEIGHT

    director_similarity, penalty, flagged = director_decision(external.director, canonical.director)
    if director_similarity is None:
        director_similarity = similarity(external.director, canonical.director)
        if director_similarity < SIMILARITY_FLOOR:
            mismatches.append(
                f'Director mismatch: "{external.director}" vs "{canonical.director}"'
            )
            confidence -= (100 - director_similarity) * DIRECTOR_WEIGHT
    elif flagged:
        mismatches.append(
            f'Log has director "{external.director}" but the matched movie has none'
        )
        confidence -= penalty

    gap = year_difference(external.year_value, canonical.year_value)
    if gap is None:
        gap = 0
    elif gap > YEAR_TOLERANCE:
        mismatches.append(f"Year mismatch: {external.year} vs {canonical.year_value}")
        confidence -= min(gap * YEAR_PENALTY_PER_YEAR, YEAR_PENALTY_CAP)

    confidence_score = min(100, max(0, round_half_up(confidence)))
    return MatchAnalysis(
        confidence_score=confidence_score,
        severity=severity_for(confidence_score),
        mismatches=mismatches,
        title_similarity=title_similarity,
        director_similarity=director_similarity,
        year_difference=gap,
    )
