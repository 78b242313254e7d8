"""Daily digest of new job matches per candidate.

Writing a digest is what notifies the candidate: every match included in
it is flagged ``notified`` afterwards and never shows up in a digest again.
"""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import urlparse

from jobmatch.config import REPORTS_DIR
from jobmatch.log import get_logger
from jobmatch.models import JobPosting, MatchRecord
from jobmatch.store import MatchStore

log = get_logger(__name__)

MAX_DIGEST_JOBS = 15


def _short_url_label(url: str) -> str:
    host = (urlparse(url).hostname or "").replace("www.", "")
    parts = host.split(".")
    return parts[0].capitalize() if parts and parts[0] else "Link"


def build_digest(candidate_id: str, matches: list[tuple[MatchRecord, JobPosting]]) -> str:
    date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    lines: list[str] = [f"# New Job Matches — {date}", ""]
    top = matches[:MAX_DIGEST_JOBS]
    lines.append(f"**{len(matches)}** new matches for candidate `{candidate_id}`")
    lines.append("")

    for record, job in top:
        lines.append(f"### {job.title} @ {job.company}")
        lines.append(f"- **Score:** {record.score}%")
        lines.append(f"- **Location:** {job.location or 'Not specified'} ({job.remote.value})")
        if job.salary_min or job.salary_max:
            lines.append(f"- **Salary:** {job.salary_min or '?'} – {job.salary_max or '?'}")
        if job.url:
            lines.append(f"- **Apply:** [{_short_url_label(job.url)}]({job.url})")
        lines.append("")

    if top:
        lines.append("---")
        lines.append("")
        lines.append("| # | Role | Company | Location | Score |")
        lines.append("|--:|------|---------|----------|------:|")
        for i, (record, job) in enumerate(top, 1):
            title = job.title[:40] + ("…" if len(job.title) > 40 else "")
            company = job.company[:22] + ("…" if len(job.company) > 22 else "")
            loc = (job.location or "").split(",")[0][:18]
            lines.append(f"| {i} | {title} | {company} | {loc} | {record.score}% |")
        lines.append("")

    return "\n".join(lines)


def write_digest(candidate_id: str, content: str, reports_dir: Path = REPORTS_DIR) -> Path:
    reports_dir.mkdir(parents=True, exist_ok=True)
    date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in candidate_id)[:40]
    path = reports_dir / f"digest_{safe}_{date}.md"
    path.write_text(content, encoding="utf-8")
    log.info("Digest written → %s", path)
    return path


def send_digest(store: MatchStore, candidate_id: str, reports_dir: Path = REPORTS_DIR) -> Path | None:
    """Write the candidate's digest of un-notified matches and flag them notified."""
    matches = [
        (record, job)
        for record, job in store.matches_for_candidate(candidate_id, unnotified_only=True)
        if job.is_active
    ]
    if not matches:
        log.debug("No new matches for candidate %s", candidate_id)
        return None
    path = write_digest(candidate_id, build_digest(candidate_id, matches), reports_dir)
    included = [job.id for _, job in matches[:MAX_DIGEST_JOBS]]
    flipped = store.mark_notified(candidate_id, included)
    log.info("Notified candidate %s of %d matches", candidate_id, flipped)
    return path


def send_digests(store: MatchStore, reports_dir: Path = REPORTS_DIR) -> list[Path]:
    paths: list[Path] = []
    for candidate_id in store.candidate_ids_with_profile():
        try:
            path = send_digest(store, candidate_id, reports_dir)
        except Exception as exc:
            log.error("Error sending digest to candidate %s: %s", candidate_id, exc)
            continue
        if path:
            paths.append(path)
    log.info("Digests sent to %d candidates", len(paths))
    return paths
