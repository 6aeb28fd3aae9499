"""
Entity Resolution Orchestrator.

Responsibilities:
- Coordinate candidate selection.
- Invoke scoring and mismatch analysis for every open pair.
- Apply the match gate.
- Return ranked, explainable match candidates.

Non-Responsibilities:
- No database access.
- No feature computation.
- No mutation of persistent state.

Invariant:
This module must be deterministic given the same inputs.

Assignment is greedy: canonical movies are visited in input order and each
takes its best-scoring open row above the gate. A row contested by two
movies goes to whichever is visited first.
"""

from typing import Callable, List, Optional, Sequence, Set

from moviematch.models import CanonicalRecord, ExternalRecord, MatchAnalysis, MatchCandidate

from .candidate_selector import open_rows, select_unlinked
from .mismatch import analyze
from .scoring import ScoreResult, score_pair

MATCH_GATE = 70


def assign_matches(
    canonicals: Sequence[CanonicalRecord],
    externals: Sequence[ExternalRecord],
    gate: int = MATCH_GATE,
    scorer: Callable[[CanonicalRecord, ExternalRecord], ScoreResult] = score_pair,
    analyzer: Callable[[CanonicalRecord, ExternalRecord], MatchAnalysis] = analyze,
) -> List[MatchCandidate]:
    """
    Pair unlinked canonical movies with log rows one-to-one.

    Args:
        canonicals: Canonical snapshot, in processing order
        externals: Admitted log rows
        gate: A pair must score strictly above this to be considered

    Returns:
        Candidates sorted by match score, highest first
    """
    consumed_rows: Set[int] = set()
    consumed_movies: Set[int] = set()
    matches: List[MatchCandidate] = []

    for canonical in select_unlinked(canonicals):
        key = id(canonical) if canonical.id is None else canonical.id
        if key in consumed_movies:
            continue

        best: Optional[MatchCandidate] = None
        for external in open_rows(externals, consumed_rows):
            result = scorer(canonical, external)
            analysis = analyzer(canonical, external)
            if result.score > gate and (best is None or result.score > best.match_score):
                best = MatchCandidate(
                    canonical=canonical,
                    external=external,
                    match_score=result.score,
                    match_reasons=list(result.reasons),
                    analysis=analysis,
                )

        if best is not None:
            matches.append(best)
            consumed_movies.add(key)
            consumed_rows.add(best.external.row_number)

    matches.sort(key=lambda m: m.match_score, reverse=True)
    return matches
