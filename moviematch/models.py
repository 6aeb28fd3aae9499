"""
Record types shared by the reconciliation pipelines.

ExternalRecord and CanonicalRecord are immutable snapshots loaded once at the
start of a run. MatchAnalysis and MatchCandidate are computed values that only
become durable when a candidate is accepted.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from .normalize import parse_year

SEVERITY_HIGH = "high"
SEVERITY_MEDIUM = "medium"
SEVERITY_LOW = "low"


def severity_for(confidence_score: int) -> str:
    """Bucket a clamped confidence score into a review severity."""
    if confidence_score < 50:
        return SEVERITY_HIGH
    if confidence_score < 80:
        return SEVERITY_MEDIUM
    return SEVERITY_LOW


@dataclass(frozen=True)
class ExternalRecord:
    """One admitted row of the viewing log."""
    row_number: int  # 1-based line index, header is row 1
    title: str
    year: str = ""
    director: Optional[str] = None
    notes: str = ""
    completed: Optional[str] = None
    ordinal: str = ""

    @property
    def year_value(self) -> Optional[int]:
        return parse_year(self.year)


@dataclass(frozen=True)
class CanonicalRecord:
    """Snapshot of a stored movie for the duration of one run."""
    id: Optional[int]
    title: str
    director: Optional[str] = None
    release_date: Optional[date] = None
    external_row_number: Optional[int] = None
    tmdb_id: Optional[int] = None

    @property
    def has_linkage(self) -> bool:
        return self.external_row_number is not None

    @property
    def year_value(self) -> Optional[int]:
        return self.release_date.year if self.release_date else None


@dataclass
class MatchAnalysis:
    confidence_score: int
    severity: str
    mismatches: List[str] = field(default_factory=list)
    title_similarity: int = 0
    director_similarity: int = 0
    year_difference: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "confidenceScore": self.confidence_score,
            "severity": self.severity,
            "mismatches": list(self.mismatches),
            "titleSimilarity": self.title_similarity,
            "directorSimilarity": self.director_similarity,
            "yearDifference": self.year_difference,
        }


@dataclass
class MatchCandidate:
    """A proposed pairing with its ranking score and analysis."""
    canonical: CanonicalRecord
    external: ExternalRecord
    match_score: int
    match_reasons: List[str]
    analysis: MatchAnalysis

    def is_auto_approved(self, threshold: int) -> bool:
        return self.match_score >= threshold

    def to_report(self, threshold: int) -> Dict[str, Any]:
        """Flatten into the camelCase shape used by run reports."""
        report = {
            "canonicalId": self.canonical.id,
            "canonicalTitle": self.canonical.title,
            "canonicalDirector": self.canonical.director,
            "canonicalYear": self.canonical.year_value,
            "externalRowNumber": self.external.row_number,
            "externalTitle": self.external.title,
            "externalDirector": self.external.director,
            "externalYear": self.external.year,
            "externalNotes": self.external.notes,
            "matchScore": self.match_score,
            "matchReasons": list(self.match_reasons),
            "autoApproved": self.is_auto_approved(threshold),
        }
        report.update(self.analysis.to_dict())
        return report
