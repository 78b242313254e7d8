"""Score job postings against a candidate profile.

Jobs are scored in batches by the LLM; any batch whose call fails is scored
by :func:`fallback_score` instead, so one flaky request never sinks a match
run.  Jobs the model leaves out of an otherwise good answer get the
fallback score too.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from jobmatch.llm import JSONCompleter, LLMResponseError
from jobmatch.log import get_logger
from jobmatch.models import CandidateProfile, JobPosting, Preferences, ScoredJob, ScoreSource

log = get_logger(__name__)

BATCH_SIZE = 5
MAX_WORKERS = 4
DESCRIPTION_CHARS = 300
SCORING_TEMPERATURE = 0.2

BASE_SCORE = 50
SKILL_POINTS = 5
SKILL_CAP = 30
TITLE_POINTS = 15
LOCATION_POINTS = 10
REMOTE_POINTS = 5


def _normalize(s: str) -> str:
    return (s or "").lower().strip()


def _clamp(score: float) -> int:
    return max(0, min(100, int(round(score))))


# ── Deterministic fallback ──────────────────────────────────────────────


def _overlapping_skills(job_skills: list[str], candidate_skills: set[str]) -> list[str]:
    """Posting skills that contain, or are contained in, some candidate skill."""
    mine = [_normalize(s) for s in candidate_skills if _normalize(s)]
    matched: list[str] = []
    for skill in job_skills:
        theirs = _normalize(skill)
        if theirs and any(m in theirs or theirs in m for m in mine):
            matched.append(skill)
    return matched


def fallback_breakdown(
    job: JobPosting, profile: CandidateProfile, prefs: Preferences
) -> tuple[int, list[str]]:
    """Return ``(score, reasons)`` for the rule-based score.

    Base 50; +5 per overlapping skill (max +30); +15 title match;
    +10 location match; +5 remote mode match; clamped to 0-100.
    """
    reasons: list[str] = []
    score = BASE_SCORE

    matched = _overlapping_skills(job.skills, profile.skills)
    if matched:
        score += min(SKILL_POINTS * len(matched), SKILL_CAP)
        reasons.append(f"Skills: {', '.join(matched[:5])}")

    title = _normalize(job.title)
    titles = [_normalize(t) for t in list(profile.job_titles) + list(prefs.job_titles)]
    hit = next((t for t in titles if t and t in title), None)
    if hit:
        score += TITLE_POINTS
        reasons.append(f"Title match: {hit}")

    location = _normalize(job.location)
    locations = [_normalize(loc) for loc in list(prefs.locations) + list(profile.preferred_locations)]
    if any(loc and loc in location for loc in locations):
        score += LOCATION_POINTS
        reasons.append("Location match")

    if prefs.remote_preference.value == job.remote.value:
        score += REMOTE_POINTS
        reasons.append(f"Work mode: {job.remote.value}")

    return _clamp(score), reasons


def fallback_score(job: JobPosting, profile: CandidateProfile, prefs: Preferences) -> int:
    """Pure and deterministic: identical inputs always give the same score."""
    return fallback_breakdown(job, profile, prefs)[0]


def _fallback_scored(job: JobPosting, profile: CandidateProfile, prefs: Preferences) -> ScoredJob:
    score, reasons = fallback_breakdown(job, profile, prefs)
    return ScoredJob(job=job, score=score, reason="; ".join(reasons), via=ScoreSource.FALLBACK)


# ── LLM scoring ─────────────────────────────────────────────────────────

_SYSTEM = "You are a job matching AI. Score jobs objectively."

_SCORE_PROMPT = """\
You are a job matching expert. Score how well each job matches the candidate's profile.

Candidate Profile:
{candidate}

Jobs to Score:
{jobs}

Return ONLY a JSON object with one entry per job, using the zero-based
jobIndex shown above and a score from 0 to 100:
{{
  "scores": [
    {{ "jobIndex": 0, "score": 85, "reason": "Brief explanation" }}
  ]
}}
"""


def _join(values) -> str:
    return ", ".join(values) if values else "Not specified"


def candidate_summary(profile: CandidateProfile, prefs: Preferences) -> str:
    level = profile.experience_level.value if profile.experience_level else "Not specified"
    titles = list(dict.fromkeys(list(profile.job_titles) + list(prefs.job_titles)))
    locations = list(prefs.locations) or list(profile.preferred_locations)
    return "\n".join([
        f"- Skills: {_join(sorted(profile.skills))}",
        f"- Experience: {profile.experience_summary or 'Not specified'}",
        f"- Preferred Job Titles: {_join(titles)}",
        f"- Education: {_join(profile.education)}",
        f"- Preferred Locations: {_join(locations) if locations else 'Any'}",
        f"- Remote Preference: {prefs.remote_preference.value}",
        f"- Experience Level: {level}",
    ])


def job_summary(index: int, job: JobPosting, description_chars: int = DESCRIPTION_CHARS) -> str:
    desc = (job.description or "").strip()
    if len(desc) > description_chars:
        desc = desc[:description_chars] + "..."
    level = job.experience_level.value if job.experience_level else "Not specified"
    return "\n".join([
        f"Job {index}:",
        f"Title: {job.title}",
        f"Company: {job.company}",
        f"Location: {job.location or 'Not specified'}",
        f"Remote: {job.remote.value}",
        f"Skills Required: {_join(job.skills)}",
        f"Experience Level: {level}",
        f"Description: {desc}",
    ])


def parse_scores(data: dict[str, Any], batch_len: int) -> dict[int, tuple[int, str]]:
    """Map batch-local index → (score, reason); bad entries are skipped.

    Raises LLMResponseError when there is no ``scores`` list at all.
    """
    entries = data.get("scores")
    if not isinstance(entries, list):
        raise LLMResponseError("Scoring response has no 'scores' list")

    parsed: dict[int, tuple[int, str]] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        idx = entry.get("jobIndex")
        score = entry.get("score")
        if isinstance(idx, bool) or not isinstance(idx, int) or not 0 <= idx < batch_len:
            log.debug("Ignoring score entry with jobIndex=%r", idx)
            continue
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            continue
        if idx in parsed:
            continue
        reason = entry.get("reason")
        parsed[idx] = (_clamp(score), reason.strip() if isinstance(reason, str) else "")
    return parsed


@dataclass
class BatchResult:
    """Outcome of one batch, tagged with the path that scored it.

    ``via`` is AI when the LLM answered (individual jobs it skipped still
    carry ``via=FALLBACK``), FALLBACK when the call itself failed.
    """

    index: int
    via: ScoreSource
    scored: list[ScoredJob] = field(default_factory=list)
    error: str | None = None


class ScoringEngine:
    def __init__(
        self,
        client: JSONCompleter | None = None,
        *,
        batch_size: int = BATCH_SIZE,
        max_workers: int = MAX_WORKERS,
        description_chars: int = DESCRIPTION_CHARS,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.client = client
        self.batch_size = batch_size
        self.max_workers = max(1, max_workers)
        self.description_chars = description_chars

    def score(
        self, jobs: list[JobPosting], profile: CandidateProfile, prefs: Preferences
    ) -> list[ScoredJob]:
        results = self.score_batches(jobs, profile, prefs)
        scored = [s for r in results for s in r.scored]
        ai = sum(1 for s in scored if s.via is ScoreSource.AI)
        log.info("Scored %d jobs (%d by AI, %d by fallback)", len(scored), ai, len(scored) - ai)
        return scored

    def score_batches(
        self, jobs: list[JobPosting], profile: CandidateProfile, prefs: Preferences
    ) -> list[BatchResult]:
        batches = [jobs[i:i + self.batch_size] for i in range(0, len(jobs), self.batch_size)]
        if not batches:
            return []

        if self.client is None:
            return [
                BatchResult(i, ScoreSource.FALLBACK, [_fallback_scored(j, profile, prefs) for j in batch])
                for i, batch in enumerate(batches)
            ]

        workers = min(len(batches), self.max_workers)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(self._score_batch, i, batch, profile, prefs)
                for i, batch in enumerate(batches)
            ]
            return [f.result() for f in futures]

    def _score_batch(
        self, index: int, batch: list[JobPosting], profile: CandidateProfile, prefs: Preferences
    ) -> BatchResult:
        try:
            prompt = _SCORE_PROMPT.format(
                candidate=candidate_summary(profile, prefs),
                jobs="\n---\n".join(
                    job_summary(k, job, self.description_chars) for k, job in enumerate(batch)
                ),
            )
            data = self.client.complete_json(_SYSTEM, prompt, temperature=SCORING_TEMPERATURE)
            entries = parse_scores(data, len(batch))
        except Exception as exc:
            log.warning("Batch %d: AI scoring failed (%s), using fallback", index, exc)
            return BatchResult(
                index,
                ScoreSource.FALLBACK,
                [_fallback_scored(j, profile, prefs) for j in batch],
                error=str(exc)[:200],
            )

        scored: list[ScoredJob] = []
        for k, job in enumerate(batch):
            if k in entries:
                score, reason = entries[k]
                scored.append(ScoredJob(job=job, score=score, reason=reason, via=ScoreSource.AI))
            else:
                scored.append(_fallback_scored(job, profile, prefs))
        missing = len(batch) - len(entries)
        if missing:
            log.info("Batch %d: %d job(s) unscored by AI, using fallback", index, missing)
        return BatchResult(index, ScoreSource.AI, scored)
