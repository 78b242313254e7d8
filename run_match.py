#!/usr/bin/env python3
"""Command-line entry point for the matching engine."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import yaml

from jobmatch.config import Settings, ensure_dirs
from jobmatch.errors import (
    ExtractionFailedError,
    InvalidInputError,
    MatchingFailedError,
    ProfileMissingError,
)
from jobmatch.log import configure_logging, get_logger
from jobmatch.matching import MatchOrchestrator
from jobmatch.models import Preferences
from jobmatch.report import send_digest, send_digests
from jobmatch.sources import MockSource

log = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="run_match", description="Resume parsing and job matching")
    parser.add_argument("--log-level", help="Console log level (default: LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("analyze", help="Extract a profile from a plain-text resume")
    p.add_argument("candidate")
    p.add_argument("resume", type=Path)

    p = sub.add_parser("prefs", help="Store candidate preferences from a YAML file")
    p.add_argument("candidate")
    p.add_argument("preferences", type=Path)

    p = sub.add_parser("match", help="Find and record the best matching jobs")
    p.add_argument("candidate")
    p.add_argument("--limit", type=int, default=20)

    p = sub.add_parser("ingest", help="Pull postings from job boards into the catalog")
    p.add_argument("keywords")
    p.add_argument("--location", default="Remote")
    p.add_argument("--limit", type=int, default=20)
    p.add_argument("--mock", action="store_true", help="Use the offline mock source")

    sub.add_parser("cleanup", help="Deactivate expired postings")

    p = sub.add_parser("digest", help="Write digests of new matches")
    p.add_argument("candidate", nargs="?")
    return parser


def _load_preferences(path: Path) -> Preferences:
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    return Preferences(
        job_titles=list(data.get("job_titles") or []),
        locations=list(data.get("locations") or []),
        min_salary=data.get("min_salary"),
        max_salary=data.get("max_salary"),
        job_types=list(data.get("job_types") or []),
        remote_preference=data.get("remote_preference") or "any",
    )


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(args.log_level)
    ensure_dirs()
    orchestrator = MatchOrchestrator.from_settings(Settings.load())
    store = orchestrator.store

    try:
        if args.command == "analyze":
            text = args.resume.read_text(encoding="utf-8", errors="ignore")
            profile = orchestrator.analyze_resume(args.candidate, text)
            log.info("Skills: %s", ", ".join(sorted(profile.skills)) or "-")
            log.info("Job titles: %s", ", ".join(profile.job_titles) or "-")
        elif args.command == "prefs":
            store.save_preferences(args.candidate, _load_preferences(args.preferences))
            log.info("Preferences saved for %s", args.candidate)
        elif args.command == "match":
            for i, s in enumerate(orchestrator.find_matches(args.candidate, args.limit), 1):
                log.info(
                    "%2d. [%3d%% %s] %s @ %s — %s",
                    i, s.score, s.via.value, s.job.title, s.job.company, s.reason or "-",
                )
        elif args.command == "ingest":
            catalog = orchestrator.catalog
            if args.mock:
                catalog.sources = [MockSource()]
            stored = catalog.ingest_keywords(args.keywords, args.location, args.limit)
            log.info("Catalog now holds %d of the fetched postings", len(stored))
        elif args.command == "cleanup":
            store.cleanup_expired()
        elif args.command == "digest":
            if args.candidate:
                send_digest(store, args.candidate)
            else:
                send_digests(store)
    except ProfileMissingError:
        log.error("No resume on file for %s — upload your resume first", args.candidate)
        return 1
    except MatchingFailedError:
        log.error("Could not compute matches, try again later")
        return 1
    except (InvalidInputError, ExtractionFailedError) as exc:
        log.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
