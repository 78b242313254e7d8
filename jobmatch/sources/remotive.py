"""Remotive — free API for remote tech jobs (no API key required).

Docs: https://remotive.com/api/remote-jobs
"""
from __future__ import annotations

import requests

from jobmatch.log import get_logger
from jobmatch.models import JobPosting, RemoteMode
from jobmatch.retry import retry
from jobmatch.sources.base import INGESTED_SOURCE, JobSource, parse_timestamp

log = get_logger(__name__)

API_URL = "https://remotive.com/api/remote-jobs"

# Remotive matches short terms far better than full role titles.
_GENERIC_WORDS = {
    "senior", "junior", "lead", "staff", "principal", "manager",
    "engineer", "specialist", "consultant", "ii", "iii", "iv", "or",
}


def _search_terms(query: str, max_terms: int = 2) -> list[str]:
    terms: list[str] = []
    for role in query.split(" OR "):
        distinctive = [w for w in role.lower().split() if w not in _GENERIC_WORDS]
        if distinctive and distinctive[0] not in terms:
            terms.append(distinctive[0])
        if len(terms) >= max_terms:
            break
    return terms or [query.split()[0].lower() if query.split() else "engineer"]


class RemotiveSource(JobSource):
    name = "remotive"
    remote_only = True

    @retry(max_attempts=2, base_delay=1.5, retryable=(requests.RequestException, OSError))
    def _fetch(self, search: str, limit: int) -> list[JobPosting]:
        params: dict = {"limit": limit}
        if search:
            params["search"] = search

        r = requests.get(API_URL, params=params, timeout=15)
        r.raise_for_status()
        data = r.json()

        jobs: list[JobPosting] = []
        for hit in data.get("jobs", []):
            url = hit.get("url", "")
            title = hit.get("title", "")
            if not url or not title:
                continue
            jobs.append(
                JobPosting(
                    title=title,
                    company=hit.get("company_name", "") or "Unknown",
                    url=url,
                    description=hit.get("description", ""),
                    location=hit.get("candidate_required_location", "") or "Remote",
                    remote=RemoteMode.REMOTE,
                    skills=list(hit.get("tags") or []),
                    posted_date=parse_timestamp(hit.get("publication_date")),
                    source=INGESTED_SOURCE,
                )
            )
        return jobs

    def search(self, query: str, locations: list[str], limit: int = 20) -> list[JobPosting]:
        all_jobs: list[JobPosting] = []
        seen_urls: set[str] = set()
        for term in _search_terms(query):
            try:
                batch = self._fetch(term, limit=limit)
            except Exception as exc:
                log.warning("Remotive search=%r error: %s", term, exc)
                continue
            for j in batch:
                if j.url not in seen_urls:
                    seen_urls.add(j.url)
                    all_jobs.append(j)
            log.debug("Remotive search=%r returned %d jobs", term, len(batch))
        return all_jobs[:limit]
