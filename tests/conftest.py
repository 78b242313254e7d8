"""Shared fixtures: a throwaway SQLite store, posting factory, fake LLM."""
from __future__ import annotations

import itertools
import threading
from datetime import timedelta
from typing import Any, Callable

import pytest

from jobmatch.models import CandidateProfile, JobPosting, Preferences, utcnow
from jobmatch.store import MatchStore


class FakeLLM:
    """Stands in for LLMClient: hands each prompt to *responder*."""

    def __init__(self, responder: Callable[[str], dict[str, Any]]) -> None:
        self.responder = responder
        self.calls: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def complete_json(self, system: str, prompt: str, *, temperature: float) -> dict[str, Any]:
        with self._lock:
            self.calls.append({"system": system, "prompt": prompt, "temperature": temperature})
        return self.responder(prompt)


@pytest.fixture
def store(tmp_path) -> MatchStore:
    s = MatchStore(f"sqlite:///{tmp_path / 'jobmatch-test.db'}")
    s.create_all()
    return s


@pytest.fixture
def make_posting() -> Callable[..., JobPosting]:
    counter = itertools.count(1)

    def _make(**overrides) -> JobPosting:
        n = next(counter)
        fields: dict[str, Any] = {
            "title": f"Job {n}",
            "company": f"Company {n}",
            "url": f"https://jobs.example.com/{n}",
            "description": "A role.",
            "location": "Austin, TX",
            "posted_date": utcnow() - timedelta(days=n),
        }
        fields.update(overrides)
        return JobPosting(**fields)

    return _make


@pytest.fixture
def add_postings(store, make_posting) -> Callable[..., list[JobPosting]]:
    def _add(*specs: dict) -> list[JobPosting]:
        return [store.add_posting(make_posting(**spec)) for spec in specs]

    return _add


@pytest.fixture
def profile() -> CandidateProfile:
    return CandidateProfile(
        skills={"React", "Node.js"},
        job_titles=["Full Stack Developer"],
        experience_summary="5 years building web applications",
    )


@pytest.fixture
def prefs() -> Preferences:
    return Preferences()
