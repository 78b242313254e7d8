from __future__ import annotations

import threading
from datetime import timedelta
from unittest.mock import patch

import pytest

from jobmatch.catalog import CatalogQuery
from jobmatch.config import Settings
from jobmatch.errors import (
    ExtractionFailedError,
    InvalidInputError,
    MatchingFailedError,
    ProfileMissingError,
)
from jobmatch.matching import MatchOrchestrator, rank
from jobmatch.models import CandidateProfile, Preferences, ScoredJob, ScoreSource, utcnow
from jobmatch.resume_parser import ProfileExtractor
from jobmatch.scorer import ScoringEngine
from tests.conftest import FakeLLM


class StubScorer:
    """Scores by posting title; unknown titles get 50."""

    def __init__(self, scores: dict[str, int] | None = None, error: Exception | None = None) -> None:
        self.scores = scores or {}
        self.error = error
        self.calls = 0

    def score(self, jobs, profile, prefs):
        self.calls += 1
        if self.error:
            raise self.error
        return [ScoredJob(j, self.scores.get(j.title, 50), "stub", ScoreSource.AI) for j in jobs]


@pytest.fixture
def candidate(store, profile):
    store.save_profile("c1", profile)
    return "c1"


def _orchestrator(store, scorer) -> MatchOrchestrator:
    return MatchOrchestrator(store, CatalogQuery(store), scorer)


def _react_jobs(add_postings, titles):
    return add_postings(*({"title": t, "skills": ["React"]} for t in titles))


class TestFindMatches:
    def test_ranked_and_truncated(self, store, add_postings, candidate):
        _react_jobs(add_postings, ["Low", "High", "Mid", "Top"])
        scorer = StubScorer({"Low": 20, "High": 80, "Mid": 55, "Top": 97})

        top = _orchestrator(store, scorer).find_matches(candidate, limit=3)

        assert [s.job.title for s in top] == ["Top", "High", "Mid"]
        assert [s.score for s in top] == [97, 80, 55]

    def test_ties_prefer_newer_postings(self, store, add_postings, candidate):
        add_postings(
            {"title": "Older", "skills": ["React"], "posted_date": utcnow() - timedelta(days=20)},
            {"title": "Newer", "skills": ["React"], "posted_date": utcnow() - timedelta(days=1)},
            {"title": "Undated", "skills": ["React"], "posted_date": None},
        )
        top = _orchestrator(store, StubScorer()).find_matches(candidate, limit=5)
        assert [s.job.title for s in top] == ["Newer", "Older", "Undated"]

    def test_matches_are_recorded(self, store, add_postings, candidate):
        low, high = _react_jobs(add_postings, ["Low", "High"])
        _orchestrator(store, StubScorer({"Low": 30, "High": 90})).find_matches(candidate, limit=1)

        assert store.get_match(high.id, candidate).score == 90
        assert store.get_match(low.id, candidate) is None

    def test_rerun_updates_score_and_keeps_notified(self, store, add_postings, candidate):
        (job,) = _react_jobs(add_postings, ["Dev"])
        _orchestrator(store, StubScorer({"Dev": 60})).find_matches(candidate)
        store.mark_notified(candidate, [job.id])

        _orchestrator(store, StubScorer({"Dev": 75})).find_matches(candidate)

        match = store.get_match(job.id, candidate)
        assert match.score == 75
        assert match.notified is True

    def test_uses_real_engine_fallback(self, store, add_postings, candidate):
        _react_jobs(add_postings, ["Full Stack Developer"])
        top = _orchestrator(store, ScoringEngine(None)).find_matches(candidate)
        assert len(top) == 1
        assert top[0].score == 70
        assert top[0].via is ScoreSource.FALLBACK

    def test_empty_catalog_gives_empty_result(self, store, candidate):
        assert _orchestrator(store, StubScorer()).find_matches(candidate) == []

    def test_limit_must_be_positive(self, store, candidate):
        with pytest.raises(InvalidInputError):
            _orchestrator(store, StubScorer()).find_matches(candidate, limit=0)

    def test_missing_profile(self, store):
        with pytest.raises(ProfileMissingError) as info:
            _orchestrator(store, StubScorer()).find_matches("ghost")
        assert info.value.candidate_id == "ghost"

    def test_empty_profile_counts_as_missing(self, store):
        store.save_profile("blank", CandidateProfile())
        with pytest.raises(ProfileMissingError):
            _orchestrator(store, StubScorer()).find_matches("blank")

    def test_scoring_failure_persists_nothing(self, store, add_postings, candidate):
        (job,) = _react_jobs(add_postings, ["Dev"])
        scorer = StubScorer(error=RuntimeError("pool exploded"))

        with pytest.raises(MatchingFailedError) as info:
            _orchestrator(store, scorer).find_matches(candidate)

        assert isinstance(info.value.__cause__, RuntimeError)
        assert store.get_match(job.id, candidate) is None

    def test_failed_upsert_does_not_abort_the_rest(self, store, add_postings, candidate, monkeypatch):
        bad, good = _react_jobs(add_postings, ["Bad", "Good"])
        real_upsert = store.upsert_match

        def flaky_upsert(job_id, candidate_id, score, matched_at=None):
            if job_id == bad.id:
                raise RuntimeError("disk full")
            real_upsert(job_id, candidate_id, score, matched_at)

        monkeypatch.setattr(store, "upsert_match", flaky_upsert)
        top = _orchestrator(store, StubScorer({"Bad": 90, "Good": 80})).find_matches(candidate)

        assert [s.job.title for s in top] == ["Bad", "Good"]
        assert store.get_match(good.id, candidate).score == 80
        assert store.get_match(bad.id, candidate) is None

    def test_preferences_reach_the_catalog(self, store, add_postings, candidate):
        add_postings(
            {"title": "Austin", "skills": ["React"], "location": "Austin, TX"},
            {"title": "Denver", "skills": ["React"], "location": "Denver, CO"},
        )
        store.save_preferences(candidate, Preferences(locations=["Denver"]))
        top = _orchestrator(store, StubScorer()).find_matches(candidate)
        assert [s.job.title for s in top] == ["Denver"]

    def test_onsite_candidate_gets_no_remote_board_postings(self, store, candidate):
        store.save_preferences(candidate, Preferences(locations=["Denver"], remote_preference="onsite"))
        orch = MatchOrchestrator.from_settings(Settings(llm_api_key=""), store=store)

        with patch("jobmatch.sources.remotive.requests.get") as get:
            top = orch.find_matches(candidate, limit=5)

        get.assert_not_called()
        assert top == []

    def test_concurrent_requests_for_different_candidates(self, store, add_postings, profile):
        _react_jobs(add_postings, [f"Dev {i}" for i in range(6)])
        ids = [f"cand-{i}" for i in range(4)]
        for cid in ids:
            store.save_profile(cid, profile)

        results: dict[str, int] = {}
        errors: list[Exception] = []

        def run(cid: str) -> None:
            try:
                # one orchestrator per request, sharing only the database
                orch = _orchestrator(store, StubScorer())
                results[cid] = len(orch.find_matches(cid, limit=4))
            except Exception as exc:  # surfaced via the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=run, args=(cid,)) for cid in ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert results == {cid: 4 for cid in ids}
        for cid in ids:
            assert len(store.matches_for_candidate(cid)) == 4

    def test_concurrent_requests_for_one_candidate(self, store, add_postings, candidate, monkeypatch):
        (job,) = _react_jobs(add_postings, ["Shared"])
        barrier = threading.Barrier(2)
        committed: list[tuple[int, object]] = []
        lock = threading.Lock()
        real_upsert = store.upsert_match

        def recording_upsert(job_id, candidate_id, score, matched_at=None):
            # holding the lock makes the commit order observable
            with lock:
                real_upsert(job_id, candidate_id, score, matched_at)
                committed.append((score, matched_at))

        monkeypatch.setattr(store, "upsert_match", recording_upsert)

        class SyncedScorer(StubScorer):
            def score(self, jobs, profile, prefs):
                barrier.wait(timeout=10)
                return super().score(jobs, profile, prefs)

        threads = [
            threading.Thread(
                target=_orchestrator(store, SyncedScorer({"Shared": score})).find_matches,
                args=(candidate,),
            )
            for score in (40, 90)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(committed) == 2
        last_score, last_matched_at = committed[-1]
        records = store.matches_for_candidate(candidate)
        assert len(records) == 1
        record = records[0][0]
        assert record.job_id == job.id
        assert (record.score, record.matched_at) == (last_score, last_matched_at)


class TestAnalyzeResume:
    def test_profile_is_stored_and_replaced(self, store):
        answers = iter([
            {"skills": ["Python", "SQL"], "jobTitles": ["Data Engineer"], "summary": "first"},
            {"skills": ["Rust"], "jobTitles": ["Systems Engineer"]},
        ])
        llm = FakeLLM(lambda prompt: next(answers))
        orch = MatchOrchestrator(store, CatalogQuery(store), StubScorer(), ProfileExtractor(llm))

        orch.analyze_resume("c9", "Data engineer with Python")
        orch.analyze_resume("c9", "Systems programmer")

        stored = store.get_profile("c9")
        assert stored.skills == {"Rust"}
        assert stored.job_titles == ["Systems Engineer"]
        assert stored.summary == ""

    def test_failed_extraction_keeps_stored_profile(self, store):
        store.save_profile("c9", CandidateProfile(skills={"Go"}, job_titles=["Backend Engineer"]))
        llm = FakeLLM(lambda prompt: {"answer": "I cannot help with that"})
        orch = MatchOrchestrator(store, CatalogQuery(store), StubScorer(), ProfileExtractor(llm))

        with pytest.raises(ExtractionFailedError):
            orch.analyze_resume("c9", "Backend engineer writing Go services")

        stored = store.get_profile("c9")
        assert stored.skills == {"Go"}
        assert stored.job_titles == ["Backend Engineer"]

    def test_without_extractor(self, store):
        with pytest.raises(InvalidInputError):
            _orchestrator(store, StubScorer()).analyze_resume("c9", "text")


def test_refresh_all_skips_failing_candidates(store, add_postings, profile):
    _react_jobs(add_postings, ["Dev A", "Dev B"])
    store.save_profile("ok", profile)
    store.save_profile("empty", CandidateProfile())
    store.save_preferences("prefs-only", Preferences())

    counts = _orchestrator(store, StubScorer()).refresh_all(limit=5)

    assert counts == {"ok": 2}


def test_rank_handles_missing_dates(make_posting):
    a = ScoredJob(make_posting(posted_date=None), 60)
    b = ScoredJob(make_posting(), 60)
    c = ScoredJob(make_posting(), 90)
    assert rank([a, b, c], 2) == [c, b]
