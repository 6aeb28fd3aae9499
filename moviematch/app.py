import argparse
import json
from pathlib import Path
from typing import Any, Dict, Optional

from . import __version__
from .config import DEFAULT_AUTO_APPROVE_THRESHOLD, RunConfig, Settings
from .database import get_session, init_database
from .env import load_env
from .errors import InputNotFound, LogFormatError, MovieNotFound, PersistenceFailure
from .log_reader import load_external_records
from .logger import get_logger
from .models import ExternalRecord
from .throttle import FixedIntervalLimiter


def _open_repository(db_path: Path):
    from storage.repositories.movies import MovieRepository

    init_database(db_path)
    return MovieRepository(get_session(db_path))


def _db_path(args: argparse.Namespace) -> Path:
    return Path(args.db) if args.db else Settings.from_env().db_path


def _write_report(report: Dict[str, Any], path: Optional[str]) -> None:
    if not path:
        return
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False)
    print(f"Report written to {out}")


def _run_config(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        dry_run=not args.live,
        auto_approve_threshold=getattr(args, "threshold", DEFAULT_AUTO_APPROVE_THRESHOLD),
        limit_rows=args.limit_rows,
        skip_rows=args.skip_rows,
    )


def cmd_backfill(args: argparse.Namespace) -> None:
    from pipelines.backfill.log_backfill import run_backfill

    config = _run_config(args)
    repo = _open_repository(_db_path(args))
    try:
        report = run_backfill(Path(args.input), repo, config)
    except (InputNotFound, LogFormatError) as e:
        raise SystemExit(str(e))
    finally:
        repo.session.close()

    mode = "DRY RUN" if config.dry_run else "LIVE"
    print(f"[{mode}] canonical={report['totalCanonical']} rows={report['totalExternal']} "
          f"skipped={report['skippedRows']}")
    print(f"Potential matches: {report['potentialMatches']}")
    print(f"  auto-applied: {report['autoApplied']}  manual review: {report['manualReview']}  "
          f"failed: {report['failed']}")
    for m in report["matches"][: args.show]:
        flag = "auto" if m["autoApproved"] else "review"
        print(f"  [{flag}] #{m['canonicalId']} {m['canonicalTitle']!r} <- row {m['externalRowNumber']} "
              f"{m['externalTitle']!r} score={m['matchScore']} confidence={m['confidenceScore']} "
              f"({m['severity']})")
    _write_report(report, args.report)
    get_logger().log_metrics_summary()


def cmd_import(args: argparse.Namespace) -> None:
    from pipelines.importing.provider_import import ProviderFallbackImporter
    from .tmdb import TMDbClient

    settings = Settings.from_env()
    api_key = args.api_key or settings.tmdb_api_key
    if not api_key:
        raise SystemExit("TMDB_API_KEY not set. Set env var or pass --api-key.")

    config = _run_config(args)
    try:
        batch = load_external_records(Path(args.input), limit_rows=config.limit_rows, skip_rows=config.skip_rows)
    except (InputNotFound, LogFormatError) as e:
        raise SystemExit(str(e))

    delay = args.delay if args.delay is not None else settings.import_delay
    provider = TMDbClient(api_key, timeout=settings.request_timeout)
    repo = None if config.dry_run else _open_repository(_db_path(args))
    try:
        importer = ProviderFallbackImporter(
            provider,
            repository=repo,
            limiter=FixedIntervalLimiter(delay),
            dry_run=config.dry_run,
        )
        report = importer.run(batch.records)
    finally:
        if repo is not None:
            repo.session.close()

    report["skippedRows"] = batch.skipped_count
    stats = report["stats"]
    print(f"Done. total={stats['total']} matched={stats['successful']} "
          f"fallback={stats['failedLookup']} errors={stats['errors']} skipped={batch.skipped_count}")
    _write_report(report, args.report)
    get_logger().log_metrics_summary()


def cmd_link(args: argparse.Namespace) -> None:
    from pipelines.backfill.log_backfill import apply_manual_match

    external = ExternalRecord(
        row_number=args.row,
        title=args.title,
        year=args.year or "",
        director=args.director,
        notes=args.notes or "",
    )
    repo = _open_repository(_db_path(args))
    try:
        movie, analysis = apply_manual_match(repo, args.movie_id, external)
    except (MovieNotFound, PersistenceFailure) as e:
        raise SystemExit(str(e))
    finally:
        repo.session.close()

    print(f"Linked movie {movie['id']} ({movie['title']}) to row {movie['csvRowNumber']}")
    print(f"Confidence: {analysis.confidence_score} ({analysis.severity})")
    for m in analysis.mismatches:
        print(f" - {m}")


def cmd_quality(args: argparse.Namespace) -> None:
    from pipelines.backfill.quality_audit import audit_match_quality

    repo = _open_repository(_db_path(args))
    try:
        result = audit_match_quality(repo, threshold=args.threshold, severity=args.severity)
    finally:
        repo.session.close()

    s = result["summary"]
    print(f"Linked movies: {s['total']} (high={s['high']} medium={s['medium']} low={s['low']})")
    print(f"At or below {args.threshold}: {s['lowConfidence']}")
    for a in result["assessments"]:
        print(f"  #{a['movieId']} {a['title']!r} vs {a['csvTitle']!r}: {a['confidenceScore']} ({a['severity']})")
        for m in a["mismatches"]:
            print(f"     - {m}")


def _add_run_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--input", required=True, help="Path to the viewing-log export (CSV)")
    p.add_argument("--db", help="Path to SQLite database (default: $MOVIEMATCH_DB or data/movies.db)")
    p.add_argument("--live", action="store_true", help="Write changes (default is a dry run)")
    p.add_argument("--limit-rows", type=int, help="Only examine this many data rows")
    p.add_argument("--skip-rows", type=int, default=0, help="Skip this many data rows after the header")
    p.add_argument("--report", help="Write the JSON report to this file")


def main():
    load_env()
    parser = argparse.ArgumentParser(prog="moviematch", description="Reconcile a viewing log with a movie collection")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    bf = subparsers.add_parser("backfill", help="Match log rows to movies that have no log linkage")
    _add_run_options(bf)
    bf.add_argument("--threshold", type=int, default=DEFAULT_AUTO_APPROVE_THRESHOLD,
                    help=f"Auto-approve match score (default {DEFAULT_AUTO_APPROVE_THRESHOLD})")
    bf.add_argument("--show", type=int, default=20, help="Number of matches to print")
    bf.set_defaults(func=cmd_backfill)

    imp = subparsers.add_parser("import", help="Import log rows via TMDb lookups with a fallback record")
    _add_run_options(imp)
    imp.add_argument("--delay", type=float, help="Seconds between provider calls (default: $MOVIEMATCH_IMPORT_DELAY)")
    imp.add_argument("--api-key", help="TMDb API key (or set TMDB_API_KEY)")
    imp.set_defaults(func=cmd_import)

    lnk = subparsers.add_parser("link", help="Manually link a movie to a log row")
    lnk.add_argument("--db", help="Path to SQLite database")
    lnk.add_argument("--movie-id", type=int, required=True)
    lnk.add_argument("--row", type=int, required=True, help="Log row number (header is row 1)")
    lnk.add_argument("--title", required=True)
    lnk.add_argument("--director")
    lnk.add_argument("--year")
    lnk.add_argument("--notes")
    lnk.set_defaults(func=cmd_link)

    qa = subparsers.add_parser("quality", help="Re-assess linked movies and list weak matches")
    qa.add_argument("--db", help="Path to SQLite database")
    qa.add_argument("--threshold", type=int, default=80, help="List matches at or below this confidence")
    qa.add_argument("--severity", choices=["high", "medium", "low"])
    qa.set_defaults(func=cmd_quality)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
