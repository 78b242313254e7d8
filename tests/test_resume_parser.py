from __future__ import annotations

import pytest

from jobmatch.config import Settings
from jobmatch.errors import ExtractionFailedError, InvalidInputError
from jobmatch.llm import LLMResponseError
from jobmatch.models import ExperienceLevel
from jobmatch.resume_parser import (
    EXTRACTION_TEMPERATURE,
    MAX_RESUME_CHARS,
    HeuristicProfileExtractor,
    ProfileExtractor,
    build_extractor,
)
from tests.conftest import FakeLLM

RESUME = """\
Jane Doe
Senior Full Stack Developer
Austin, TX

7 years of experience building web platforms with React, Node.js and PostgreSQL.
Deployed services on AWS with Docker.

Education
B.S. Computer Science, University of Texas
"""


def _answer(**overrides) -> dict:
    data = {
        "skills": ["React", "Node.js", "PostgreSQL"],
        "experience": "7 years, senior",
        "education": ["B.S. Computer Science"],
        "summary": "Full stack developer.",
        "jobTitles": ["Full Stack Developer", "Backend Engineer", "Full Stack Developer"],
        "preferredLocations": ["Austin"],
        "experienceLevel": "Senior",
    }
    data.update(overrides)
    return data


class TestProfileExtractor:
    def test_extracts_profile(self):
        llm = FakeLLM(lambda prompt: _answer())
        profile = ProfileExtractor(llm).extract(RESUME)

        assert profile.skills == {"React", "Node.js", "PostgreSQL"}
        assert profile.job_titles == ["Full Stack Developer", "Backend Engineer"]
        assert profile.experience_level is ExperienceLevel.SENIOR
        assert profile.preferred_locations == ["Austin"]
        assert profile.experience_summary == "7 years, senior"
        assert llm.calls[0]["temperature"] == EXTRACTION_TEMPERATURE
        assert "Jane Doe" in llm.calls[0]["prompt"]

    def test_long_resume_is_truncated(self):
        llm = FakeLLM(lambda prompt: _answer())
        ProfileExtractor(llm).extract("a" * (MAX_RESUME_CHARS + 500))
        assert "a" * MAX_RESUME_CHARS in llm.calls[0]["prompt"]
        assert "a" * (MAX_RESUME_CHARS + 1) not in llm.calls[0]["prompt"]

    def test_unknown_level_is_dropped(self):
        llm = FakeLLM(lambda prompt: _answer(experienceLevel="wizard"))
        assert ProfileExtractor(llm).extract(RESUME).experience_level is None

    def test_missing_keys_default_to_empty(self):
        llm = FakeLLM(lambda prompt: {"skills": ["Go"]})
        profile = ProfileExtractor(llm).extract(RESUME)
        assert profile.skills == {"Go"}
        assert profile.job_titles == []
        assert profile.summary == ""

    def test_single_string_is_wrapped(self):
        llm = FakeLLM(lambda prompt: _answer(skills="Go"))
        assert ProfileExtractor(llm).extract(RESUME).skills == {"Go"}

    @pytest.mark.parametrize("bad", [
        {"skills": [1, 2]},
        {"skills": {"python": True}},
        {"summary": ["not", "text"]},
    ])
    def test_schema_violations_fail(self, bad):
        llm = FakeLLM(lambda prompt: _answer(**bad))
        with pytest.raises(ExtractionFailedError):
            ProfileExtractor(llm).extract(RESUME)

    @pytest.mark.parametrize("reply", [
        {"answer": "I cannot help with that"},
        {},
        {"skills": [], "jobTitles": [], "summary": "", "experience": ""},
    ])
    def test_reply_without_profile_content_fails(self, reply):
        with pytest.raises(ExtractionFailedError):
            ProfileExtractor(FakeLLM(lambda prompt: reply)).extract(RESUME)

    def test_unparseable_response_fails(self):
        def responder(prompt):
            raise LLMResponseError("no JSON object in response")

        with pytest.raises(ExtractionFailedError, match="no JSON object"):
            ProfileExtractor(FakeLLM(responder)).extract(RESUME)

    def test_service_error_fails(self):
        def responder(prompt):
            raise ConnectionError("connection reset")

        with pytest.raises(ExtractionFailedError) as info:
            ProfileExtractor(FakeLLM(responder)).extract(RESUME)
        assert isinstance(info.value.__cause__, ConnectionError)

    @pytest.mark.parametrize("text", ["", "   \n\t"])
    def test_empty_text_is_invalid(self, text):
        llm = FakeLLM(lambda prompt: _answer())
        with pytest.raises(InvalidInputError):
            ProfileExtractor(llm).extract(text)
        assert llm.calls == []


class TestHeuristicExtractor:
    def test_extracts_keywords(self):
        profile = HeuristicProfileExtractor().extract(RESUME)
        assert {"react", "node.js", "postgresql", "aws", "docker"} <= profile.skills
        assert "Senior Full Stack Developer" in profile.job_titles
        assert profile.experience_level is ExperienceLevel.SENIOR
        assert profile.experience_summary == "7 years of experience"
        assert "Austin" in profile.preferred_locations
        assert profile.education == ["B.S. Computer Science, University of Texas"]

    def test_no_years_means_no_level(self):
        profile = HeuristicProfileExtractor().extract("Python developer")
        assert profile.experience_level is None
        assert profile.skills == {"python"}

    def test_empty_text_is_invalid(self):
        with pytest.raises(InvalidInputError):
            HeuristicProfileExtractor().extract("")

    def test_text_without_signal_fails(self):
        with pytest.raises(ExtractionFailedError):
            HeuristicProfileExtractor().extract("Lorem ipsum dolor sit amet")


def test_build_extractor_without_key_is_heuristic():
    assert isinstance(build_extractor(Settings(llm_api_key="")), HeuristicProfileExtractor)


def test_build_extractor_with_client():
    llm = FakeLLM(lambda prompt: _answer())
    assert isinstance(build_extractor(Settings(), llm), ProfileExtractor)
