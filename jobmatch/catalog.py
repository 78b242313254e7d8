"""Select the pool of catalog postings worth scoring for a candidate."""
from __future__ import annotations

from jobmatch.errors import InvalidInputError
from jobmatch.log import get_logger
from jobmatch.models import CandidateProfile, JobPosting, Preferences, RemoteMode, RemotePreference
from jobmatch.sources import JobSource
from jobmatch.store import MatchStore

log = get_logger(__name__)

POOL_FACTOR = 2
MIN_LOCAL_RESULTS = 5
INGEST_LIMIT = 20


def wants_remote(profile: CandidateProfile, prefs: Preferences) -> bool:
    """True for a remote/any preference or "remote" among the preferred locations."""
    if prefs.remote_preference in (RemotePreference.REMOTE, RemotePreference.ANY):
        return True
    locations = list(prefs.locations) + list(profile.preferred_locations)
    return any(loc.strip().lower() == "remote" for loc in locations)


class CatalogQuery:
    """Recall-oriented catalog filter with an ingestion fallback.

    Skills and titles are OR-ed (any hit qualifies); preferred locations
    and a non-"any" remote preference are hard constraints.  When fewer
    than *min_local_results* postings qualify, *sources* are asked for up
    to *ingest_limit* more, which are stored (deduplicated by URL) and
    appended.
    """

    def __init__(
        self,
        store: MatchStore,
        sources: list[JobSource] | None = None,
        *,
        min_local_results: int = MIN_LOCAL_RESULTS,
        ingest_limit: int = INGEST_LIMIT,
    ) -> None:
        self.store = store
        self.sources = list(sources or [])
        self.min_local_results = min_local_results
        self.ingest_limit = ingest_limit

    def query(self, profile: CandidateProfile, prefs: Preferences, want: int) -> list[JobPosting]:
        if want <= 0:
            raise InvalidInputError(f"want must be positive, got {want}")

        remote = None
        if prefs.remote_preference is not RemotePreference.ANY:
            remote = RemoteMode(prefs.remote_preference.value)

        jobs = self.store.query_postings(
            skills=sorted(profile.skills),
            titles=list(profile.job_titles) + list(prefs.job_titles),
            locations=prefs.locations,
            remote=remote,
            limit=want * POOL_FACTOR,
        )
        log.info("Catalog returned %d active postings (pool size %d)", len(jobs), want * POOL_FACTOR)

        if len(jobs) < self.min_local_results:
            log.info("Only %d jobs found in catalog, ingesting from external sources...", len(jobs))
            seen = {j.id for j in jobs}
            for posting in self.ingest(profile, prefs):
                if posting.id not in seen and posting.is_active:
                    seen.add(posting.id)
                    jobs.append(posting)
        return jobs

    def ingest(self, profile: CandidateProfile, prefs: Preferences) -> list[JobPosting]:
        """Fetch postings for the candidate's titles and store the new ones.

        Remote-only sources are asked only when the candidate is open to
        remote work. Never raises: a failing source contributes zero postings.
        """
        sources = self.sources_for(profile, prefs)
        if not sources:
            return []
        keywords = " OR ".join(dict.fromkeys(list(profile.job_titles) + list(prefs.job_titles)))
        location = prefs.locations[0] if prefs.locations else "Remote"
        return self.ingest_keywords(keywords, location, sources=sources)

    def sources_for(self, profile: CandidateProfile, prefs: Preferences) -> list[JobSource]:
        if wants_remote(profile, prefs):
            return list(self.sources)
        selected = []
        for source in self.sources:
            if source.remote_only:
                log.info("[%s] skipped: candidate is not looking for remote work", source.name)
                continue
            selected.append(source)
        return selected

    def ingest_keywords(
        self,
        keywords: str,
        location: str,
        limit: int | None = None,
        sources: list[JobSource] | None = None,
    ) -> list[JobPosting]:
        limit = limit or self.ingest_limit
        fetched: list[JobPosting] = []
        for source in self.sources if sources is None else sources:
            if len(fetched) >= limit:
                break
            try:
                batch = source.search(keywords, [location], limit=limit - len(fetched))
            except Exception as exc:
                log.error("[%s] ingestion FAILED: %s", source.name, exc)
                continue
            log.info("[%s] returned %d jobs", source.name, len(batch))
            fetched.extend(batch)

        stored: list[JobPosting] = []
        created = 0
        for raw in fetched[:limit]:
            try:
                posting, is_new = self.store.get_or_create_posting(raw)
            except Exception as exc:
                log.error("Error saving ingested job %s: %s", raw.url, exc)
                continue
            created += is_new
            stored.append(posting)
        log.info("Ingested %d postings (%d new, %d already in catalog)", len(stored), created, len(stored) - created)
        return stored
