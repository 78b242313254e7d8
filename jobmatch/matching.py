"""
Job matching for one candidate.

Runs: resolve profile → catalog query → scoring → rank/truncate → match records.
"""
from __future__ import annotations

from datetime import datetime, timezone

from jobmatch.catalog import CatalogQuery
from jobmatch.config import Settings
from jobmatch.errors import InvalidInputError, MatchingFailedError, ProfileMissingError
from jobmatch.llm import LLMClient
from jobmatch.log import get_logger
from jobmatch.models import CandidateProfile, ScoredJob, utcnow
from jobmatch.resume_parser import HeuristicProfileExtractor, ProfileExtractor, build_extractor
from jobmatch.scorer import ScoringEngine
from jobmatch.sources import get_sources
from jobmatch.store import MatchStore

log = get_logger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def rank(scored: list[ScoredJob], limit: int) -> list[ScoredJob]:
    """Score descending, newer postings first on ties, at most *limit*."""
    ordered = sorted(
        scored,
        key=lambda s: (s.score, s.job.posted_date or _OLDEST),
        reverse=True,
    )
    return ordered[:limit]


class MatchOrchestrator:
    def __init__(
        self,
        store: MatchStore,
        catalog: CatalogQuery,
        scorer: ScoringEngine,
        extractor: ProfileExtractor | HeuristicProfileExtractor | None = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.scorer = scorer
        self.extractor = extractor

    @classmethod
    def from_settings(cls, settings: Settings, store: MatchStore | None = None) -> MatchOrchestrator:
        """Wire every collaborator from *settings*; nothing is shared process-wide."""
        store = store or MatchStore.from_settings(settings)
        client = LLMClient.from_settings(settings)
        catalog = CatalogQuery(
            store,
            get_sources(settings),
            min_local_results=settings.min_local_results,
            ingest_limit=settings.ingest_limit,
        )
        scorer = ScoringEngine(
            client,
            batch_size=settings.batch_size,
            max_workers=settings.scoring_max_workers,
        )
        return cls(store, catalog, scorer, build_extractor(settings, client))

    def analyze_resume(self, candidate_id: str, resume_text: str) -> CandidateProfile:
        """Extract a profile and store it, replacing any previous one."""
        if self.extractor is None:
            raise InvalidInputError("No profile extractor configured")
        profile = self.extractor.extract(resume_text)
        self.store.save_profile(candidate_id, profile)
        log.info("Resume analyzed for candidate %s", candidate_id)
        return profile

    def find_matches(self, candidate_id: str, limit: int = 20) -> list[ScoredJob]:
        if limit <= 0:
            raise InvalidInputError(f"limit must be positive, got {limit}")

        profile = self.store.get_profile(candidate_id)
        if profile is None or profile.is_empty():
            raise ProfileMissingError(candidate_id)
        prefs = self.store.get_preferences(candidate_id)

        try:
            jobs = self.catalog.query(profile, prefs, limit)
            scored = self.scorer.score(jobs, profile, prefs)
        except Exception as exc:
            log.error("Job matching failed for candidate %s: %s", candidate_id, exc)
            raise MatchingFailedError(f"Could not compute matches for {candidate_id}") from exc

        top = rank(scored, limit)
        self._record_matches(candidate_id, top)
        return top

    def _record_matches(self, candidate_id: str, top: list[ScoredJob]) -> None:
        # upserts are independent and idempotent: a failed one is skipped, not rolled back
        matched_at = utcnow()
        written = 0
        for s in top:
            try:
                self.store.upsert_match(s.job.id, candidate_id, s.score, matched_at)
                written += 1
            except Exception as exc:
                log.error("Error recording match job=%s candidate=%s: %s", s.job.id, candidate_id, exc)
        log.info("Updated %d/%d matched jobs for candidate %s", written, len(top), candidate_id)

    def refresh_all(self, limit: int = 20) -> dict[str, int]:
        """Re-run matching for every candidate with a profile; returns match counts."""
        counts: dict[str, int] = {}
        candidates = self.store.candidate_ids_with_profile()
        log.info("Updating job recommendations for %d candidates", len(candidates))
        for candidate_id in candidates:
            try:
                counts[candidate_id] = len(self.find_matches(candidate_id, limit))
            except (ProfileMissingError, MatchingFailedError) as exc:
                log.error("Error updating recommendations for %s: %s", candidate_id, exc)
        return counts
