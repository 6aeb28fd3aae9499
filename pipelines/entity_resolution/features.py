"""
Feature Extraction for Entity Resolution.

Responsibilities:
- Compute individual similarity features between a canonical movie and a
  viewing-log row (edit-distance similarity, word overlap, year gap).
- Resolve the director similarity default from an explicit decision table.

Non-Responsibilities:
- No weighting logic.
- No threshold logic.
- No persistence.

Invariant:
similarity(a, b) is symmetric and always within [0, 100].
"""

import math
from functools import lru_cache
from typing import Optional, Tuple

from moviematch.normalize import normalize_text


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, matching Math.round."""
    return int(math.floor(value + 0.5))


@lru_cache(maxsize=8192)
def _edit_distance(s1: str, s2: str) -> int:
    # Full (len(s2)+1) x (len(s1)+1) matrix.
    matrix = [[0] * (len(s1) + 1) for _ in range(len(s2) + 1)]
    for i in range(len(s1) + 1):
        matrix[0][i] = i
    for j in range(len(s2) + 1):
        matrix[j][0] = j

    for j in range(1, len(s2) + 1):
        for i in range(1, len(s1) + 1):
            indicator = 0 if s1[i - 1] == s2[j - 1] else 1
            matrix[j][i] = min(
                matrix[j][i - 1] + 1,
                matrix[j - 1][i] + 1,
                matrix[j - 1][i - 1] + indicator,
            )
    return matrix[len(s2)][len(s1)]


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance. Memoized per distinct unordered pair."""
    if b < a:
        a, b = b, a
    return _edit_distance(a, b)


def similarity(a: Optional[str], b: Optional[str]) -> int:
    """
    Normalized edit-distance similarity in [0, 100].

    Empty (or missing) input on either side scores 0, including two empty
    strings.
    """
    s1 = normalize_text(a)
    s2 = normalize_text(b)
    if not s1 or not s2:
        return 0
    if s1 == s2:
        return 100

    distance = edit_distance(s1, s2)
    return round_half_up(100 * (1 - distance / max(len(s1), len(s2))))


def word_overlap(a: str, b: str) -> float:
    """|shared words| / max(|words a|, |words b|) over whitespace-split words."""
    words_a = set(normalize_text(a).split())
    words_b = set(normalize_text(b).split())
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / max(len(words_a), len(words_b))


def contains_either(a: str, b: str) -> bool:
    return a in b or b in a


def year_difference(external_year: Optional[int], canonical_year: Optional[int]) -> Optional[int]:
    if external_year is None or canonical_year is None:
        return None
    return abs(external_year - canonical_year)


# (external has director, canonical has director) -> (default similarity, penalty, flag mismatch)
# None as the similarity means "compute it".
DIRECTOR_DECISIONS = {
    (True, True): (None, None, None),
    (True, False): (0, 20, True),
    (False, True): (100, 0, False),
    (False, False): (0, 0, False),
}


def director_decision(external_director: Optional[str], canonical_director: Optional[str]) -> Tuple:
    key = (bool(normalize_text(external_director)), bool(normalize_text(canonical_director)))
    return DIRECTOR_DECISIONS[key]
