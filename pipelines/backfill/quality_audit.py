"""
Match-Quality Audit.

Re-assesses every movie that already carries a viewing-log linkage, using
the stored log fields and the movie's current metadata, and lists the ones
whose confidence has fallen to or below a threshold.
"""

from typing import Any, Dict, Optional

from moviematch.models import (
    SEVERITY_HIGH,
    SEVERITY_LOW,
    SEVERITY_MEDIUM,
    ExternalRecord,
)
from pipelines.entity_resolution.mismatch import analyze
from storage.repositories.movies import MovieRepository, to_canonical

DEFAULT_AUDIT_THRESHOLD = 80
SEVERITIES = (SEVERITY_HIGH, SEVERITY_MEDIUM, SEVERITY_LOW)


def audit_match_quality(
    repository: MovieRepository,
    threshold: int = DEFAULT_AUDIT_THRESHOLD,
    severity: Optional[str] = None,
) -> Dict[str, Any]:
    if severity is not None and severity not in SEVERITIES:
        raise ValueError(f"severity must be one of {', '.join(SEVERITIES)}")

    assessments = []
    for movie in repository.load_linked():
        external = ExternalRecord(
            row_number=movie.csv_row_number,
            title=movie.csv_title or "",
            year=movie.csv_year or "",
            director=movie.csv_director,
            notes=movie.csv_notes or "",
        )
        canonical = to_canonical(movie)
        analysis = analyze(canonical, external)
        entry = {
            "movieId": movie.id,
            "title": movie.title,
            "csvTitle": movie.csv_title,
            "csvDirector": movie.csv_director,
            "csvYear": movie.csv_year,
            "director": movie.director,
            "releaseYear": canonical.year_value,
        }
        entry.update(analysis.to_dict())
        assessments.append(entry)

    flagged = [a for a in assessments if a["confidenceScore"] <= threshold]
    if severity:
        flagged = [a for a in flagged if a["severity"] == severity]
    flagged.sort(key=lambda a: a["confidenceScore"])

    summary = {
        "total": len(assessments),
        "lowConfidence": len(flagged),
    }
    for level in SEVERITIES:
        summary[level] = sum(1 for a in assessments if a["severity"] == level)

    return {"summary": summary, "assessments": flagged}
