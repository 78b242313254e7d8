"""
Daily maintenance: expire postings, refresh recommendations, send digests.

Usage:
  - Cron (recommended), e.g. at 8 AM:
      0 8 * * * cd /path/to/project && .venv/bin/python -m jobmatch.run_daily --once
  - Or keep this module running in the background: python -m jobmatch.run_daily
"""
from __future__ import annotations

import sys
import time
from datetime import datetime, timedelta

from jobmatch.config import Settings, ensure_dirs
from jobmatch.log import get_logger
from jobmatch.matching import MatchOrchestrator
from jobmatch.report import send_digests

log = get_logger(__name__)

REFRESH_LIMIT = 20


def run_once(orchestrator: MatchOrchestrator) -> dict:
    expired = orchestrator.store.cleanup_expired()
    refreshed = orchestrator.refresh_all(limit=REFRESH_LIMIT)
    digests = send_digests(orchestrator.store)
    log.info(
        "Daily run complete — expired=%d, candidates refreshed=%d, digests=%d",
        expired, len(refreshed), len(digests),
    )
    return {"expired": expired, "refreshed": refreshed, "digests": [str(p) for p in digests]}


def next_run(hour: int, now: datetime | None = None) -> datetime:
    now = now or datetime.now()
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if now >= target:
        target = target + timedelta(days=1)
    return target


def main(settings: Settings) -> None:
    orchestrator = MatchOrchestrator.from_settings(settings)
    log.info("Scheduler: run daily at %d:00 local time", settings.daily_run_hour)
    while True:
        target = next_run(settings.daily_run_hour)
        wait_secs = (target - datetime.now()).total_seconds()
        log.info("Next run at %s (in %.1f hours)", target, wait_secs / 3600)
        time.sleep(max(wait_secs, 0))
        log.info("Running daily jobs...")
        run_once(orchestrator)


if __name__ == "__main__":
    ensure_dirs()
    settings = Settings.load()
    if "--once" in sys.argv:
        run_once(MatchOrchestrator.from_settings(settings))
        sys.exit(0)
    main(settings)
