"""Data models for candidates, postings and matches."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from jobmatch.errors import InvalidInputError


class ExperienceLevel(str, Enum):
    ENTRY = "entry"
    MID = "mid"
    SENIOR = "senior"
    LEAD = "lead"
    EXECUTIVE = "executive"

    @classmethod
    def parse(cls, value: str | None) -> ExperienceLevel | None:
        """Map free text to a level; anything unknown is absent."""
        if not value:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class RemoteMode(str, Enum):
    REMOTE = "remote"
    HYBRID = "hybrid"
    ONSITE = "onsite"


class RemotePreference(str, Enum):
    REMOTE = "remote"
    HYBRID = "hybrid"
    ONSITE = "onsite"
    ANY = "any"


class ScoreSource(str, Enum):
    """Which scoring path produced a score."""

    AI = "ai"
    FALLBACK = "fallback"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CandidateProfile:
    """Structured attributes derived from a resume.

    Derived, never authoritative: a new resume replaces the whole profile.
    """

    skills: set[str] = field(default_factory=set)
    job_titles: list[str] = field(default_factory=list)
    education: list[str] = field(default_factory=list)
    experience_summary: str = ""
    experience_level: ExperienceLevel | None = None
    preferred_locations: list[str] = field(default_factory=list)
    summary: str = ""

    def is_empty(self) -> bool:
        return not (self.skills or self.job_titles or self.summary or self.experience_summary)

    def to_dict(self) -> dict:
        return {
            "skills": sorted(self.skills),
            "jobTitles": list(self.job_titles),
            "education": list(self.education),
            "experience": self.experience_summary,
            "experienceLevel": self.experience_level.value if self.experience_level else None,
            "preferredLocations": list(self.preferred_locations),
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, data: dict) -> CandidateProfile:
        return cls(
            skills=set(data.get("skills") or []),
            job_titles=list(data.get("jobTitles") or []),
            education=list(data.get("education") or []),
            experience_summary=data.get("experience") or "",
            experience_level=ExperienceLevel.parse(data.get("experienceLevel")),
            preferred_locations=list(data.get("preferredLocations") or []),
            summary=data.get("summary") or "",
        )


@dataclass
class Preferences:
    """Candidate-owned search preferences; read-only to the engine."""

    job_titles: list[str] = field(default_factory=list)
    locations: list[str] = field(default_factory=list)
    min_salary: int | None = None
    max_salary: int | None = None
    job_types: list[str] = field(default_factory=list)
    remote_preference: RemotePreference = RemotePreference.ANY

    def __post_init__(self) -> None:
        if not isinstance(self.remote_preference, RemotePreference):
            try:
                self.remote_preference = RemotePreference(str(self.remote_preference).lower())
            except ValueError as exc:
                raise InvalidInputError(
                    f"remote_preference must be one of "
                    f"{[p.value for p in RemotePreference]}, got {self.remote_preference!r}"
                ) from exc
        if (
            self.min_salary is not None
            and self.max_salary is not None
            and self.min_salary > self.max_salary
        ):
            raise InvalidInputError(
                f"min_salary ({self.min_salary}) exceeds max_salary ({self.max_salary})"
            )

    def to_dict(self) -> dict:
        return {
            "jobTitles": list(self.job_titles),
            "locations": list(self.locations),
            "minSalary": self.min_salary,
            "maxSalary": self.max_salary,
            "jobTypes": list(self.job_types),
            "remotePreference": self.remote_preference.value,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> Preferences:
        data = data or {}
        return cls(
            job_titles=list(data.get("jobTitles") or []),
            locations=list(data.get("locations") or []),
            min_salary=data.get("minSalary"),
            max_salary=data.get("maxSalary"),
            job_types=list(data.get("jobTypes") or []),
            remote_preference=data.get("remotePreference") or RemotePreference.ANY,
        )


@dataclass
class JobPosting:
    title: str
    company: str
    url: str
    description: str = ""
    location: str = ""
    remote: RemoteMode = RemoteMode.ONSITE
    salary_min: int | None = None
    salary_max: int | None = None
    skills: list[str] = field(default_factory=list)
    experience_level: ExperienceLevel | None = None
    source: str = "manual"
    is_active: bool = True
    posted_date: datetime | None = None
    expires_at: datetime | None = None
    id: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.remote, RemoteMode):
            self.remote = RemoteMode(str(self.remote).lower())
        if self.experience_level is not None and not isinstance(self.experience_level, ExperienceLevel):
            self.experience_level = ExperienceLevel.parse(self.experience_level)
        # naive datetimes are taken as UTC
        if self.posted_date is not None and self.posted_date.tzinfo is None:
            self.posted_date = self.posted_date.replace(tzinfo=timezone.utc)
        if self.expires_at is not None and self.expires_at.tzinfo is None:
            self.expires_at = self.expires_at.replace(tzinfo=timezone.utc)

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now or utcnow())

    def is_open(self, now: datetime | None = None) -> bool:
        """Active flag with expiry applied on top of it."""
        return self.is_active and not self.is_expired(now)


@dataclass
class ScoredJob:
    job: JobPosting
    score: int
    reason: str = ""
    via: ScoreSource = ScoreSource.FALLBACK


@dataclass
class MatchRecord:
    job_id: int
    candidate_id: str
    score: int
    matched_at: datetime
    notified: bool = False
