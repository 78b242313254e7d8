"""Adzuna job search — keyed aggregator API.

Free tier: 250 requests/day.  Sign up at https://developer.adzuna.com/
"""
from __future__ import annotations

import requests

from jobmatch.log import get_logger
from jobmatch.models import JobPosting
from jobmatch.retry import retry
from jobmatch.sources.base import INGESTED_SOURCE, JobSource, infer_remote, parse_timestamp

log = get_logger(__name__)

BASE_URL = "https://api.adzuna.com/v1/api/jobs/{country}/search"


def _to_posting(hit: dict) -> JobPosting | None:
    url = hit.get("redirect_url", "")
    title = hit.get("title", "")
    if not url or not title:
        return None
    company = (hit.get("company") or {}).get("display_name", "") or "Unknown"
    loc = (hit.get("location") or {}).get("display_name", "")
    desc = hit.get("description", "")

    sal_min = hit.get("salary_min")
    sal_max = hit.get("salary_max")
    return JobPosting(
        title=title,
        company=company,
        url=url,
        description=desc,
        location=loc,
        remote=infer_remote(title, loc, desc),
        salary_min=int(sal_min) if sal_min else None,
        salary_max=int(sal_max) if sal_max else None,
        posted_date=parse_timestamp(hit.get("created")),
        source=INGESTED_SOURCE,
    )


class AdzunaSource(JobSource):
    name = "adzuna"

    def __init__(self, app_id: str, app_key: str, country: str = "us") -> None:
        self.app_id = app_id
        self.app_key = app_key
        self.country = country

    @retry(max_attempts=3, base_delay=2.0, retryable=(requests.RequestException, OSError))
    def _fetch(self, query: str, location: str, page: int, per_page: int) -> list[JobPosting]:
        params: dict = {
            "app_id": self.app_id,
            "app_key": self.app_key,
            "what": query,
            "results_per_page": per_page,
            "content-type": "application/json",
        }
        if location:
            params["where"] = location

        r = requests.get(f"{BASE_URL.format(country=self.country)}/{page}", params=params, timeout=15)
        r.raise_for_status()
        data = r.json()

        jobs: list[JobPosting] = []
        for hit in data.get("results", []):
            posting = _to_posting(hit)
            if posting is not None:
                jobs.append(posting)
        return jobs

    def search(self, query: str, locations: list[str], limit: int = 20) -> list[JobPosting]:
        all_jobs: list[JobPosting] = []
        seen_urls: set[str] = set()

        search_locs = locations[:2] if locations else [""]
        for loc in search_locs:
            if len(all_jobs) >= limit:
                break
            try:
                batch = self._fetch(query, loc, page=1, per_page=min(limit, 50))
            except Exception as exc:
                log.warning("Adzuna loc=%r error: %s", loc, exc)
                continue
            for j in batch:
                if j.url not in seen_urls:
                    seen_urls.add(j.url)
                    all_jobs.append(j)
            log.debug("Adzuna loc=%r returned %d jobs", loc, len(batch))

        return all_jobs[:limit]
