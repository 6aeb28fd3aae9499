"""
Candidate Selection Logic.

Responsibilities:
- Select the canonical movies that still need a viewing-log linkage.
- Select the log rows not yet consumed in the current run.

Non-Responsibilities:
- No scoring.
- No similarity computation.
- No resolution decisions.

Invariant:
Candidate selection must never exclude a valid match.
It may include false positives but never false negatives.
A canonical movie that already carries a linkage is never a candidate,
which keeps repeated runs from re-proposing it.
"""

from typing import Iterable, Iterator, List, Set

from moviematch.models import CanonicalRecord, ExternalRecord


def select_unlinked(canonicals: Iterable[CanonicalRecord]) -> List[CanonicalRecord]:
    """Canonical movies without a log linkage, input order preserved."""
    return [c for c in canonicals if not c.has_linkage]


def select_unclaimed_rows(
    canonicals: Iterable[CanonicalRecord],
    externals: Iterable[ExternalRecord],
) -> List[ExternalRecord]:
    """Log rows whose row number is not already linked to some movie."""
    claimed = {c.external_row_number for c in canonicals if c.has_linkage}
    return [e for e in externals if e.row_number not in claimed]


def open_rows(externals: Iterable[ExternalRecord], consumed: Set[int]) -> Iterator[ExternalRecord]:
    """Rows still available within a run, in input order."""
    for external in externals:
        if external.row_number not in consumed:
            yield external
