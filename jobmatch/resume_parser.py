"""Extract a structured candidate profile from plain resume text.

When an LLM client is configured the text goes to the structured-extraction
prompt below; otherwise a heuristic keyword parser produces the profile.
Binary formats (PDF, DOCX) are converted to text before reaching this module.
"""
from __future__ import annotations

import re
from typing import Any

from jobmatch.config import Settings
from jobmatch.errors import ExtractionFailedError, InvalidInputError
from jobmatch.llm import JSONCompleter, LLMClient, LLMResponseError
from jobmatch.log import get_logger
from jobmatch.models import CandidateProfile, ExperienceLevel

log = get_logger(__name__)

MAX_RESUME_CHARS = 12000
EXTRACTION_TEMPERATURE = 0.2

# ── LLM-based extraction ────────────────────────────────────────────────

_SYSTEM = "You are an expert resume analyzer. Extract structured data from resumes accurately."

_PARSE_PROMPT = """\
Analyze this resume and extract structured information.
Return ONLY a JSON object with these exact keys (use empty string or empty list if unknown):

{{
  "skills": ["list of technical and soft skills"],
  "experience": "brief summary of work experience (years and level)",
  "education": ["list of educational qualifications"],
  "summary": "2-3 sentence professional summary",
  "jobTitles": ["list of relevant job titles they might be interested in"],
  "preferredLocations": ["list of locations mentioned or inferred"],
  "experienceLevel": "entry | mid | senior | lead | executive"
}}

Resume:
{resume_text}
"""

_LIST_KEYS = ("skills", "education", "jobTitles", "preferredLocations")
_TEXT_KEYS = ("experience", "summary", "experienceLevel")


def _require_text(text: str) -> str:
    if not text or not text.strip():
        raise InvalidInputError("Resume text is empty")
    return text.strip()


def _validate(data: dict[str, Any]) -> dict[str, Any]:
    """Check the response against the requested schema, normalizing mild drift."""
    if not any(key in data for key in _LIST_KEYS + _TEXT_KEYS):
        raise ExtractionFailedError(
            f"Response has none of the profile keys (got: {', '.join(sorted(map(str, data))) or 'nothing'})"
        )
    out: dict[str, Any] = {}
    for key in _LIST_KEYS:
        value = data.get(key) or []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ExtractionFailedError(f"Field {key!r} is not a list of strings")
        out[key] = [v.strip() for v in value if v.strip()]
    for key in _TEXT_KEYS:
        value = data.get(key) or ""
        if not isinstance(value, str):
            raise ExtractionFailedError(f"Field {key!r} is not a string")
        out[key] = value.strip()
    return out


class ProfileExtractor:
    """Resume text → CandidateProfile via the structured-extraction service.

    No retries here: on failure the caller decides whether to try again.
    """

    def __init__(self, client: JSONCompleter) -> None:
        self.client = client

    def extract(self, raw_resume_text: str) -> CandidateProfile:
        text = _require_text(raw_resume_text)
        prompt = _PARSE_PROMPT.format(resume_text=text[:MAX_RESUME_CHARS])
        try:
            data = self.client.complete_json(_SYSTEM, prompt, temperature=EXTRACTION_TEMPERATURE)
        except LLMResponseError as exc:
            raise ExtractionFailedError(str(exc)) from exc
        except Exception as exc:
            raise ExtractionFailedError(f"Extraction service call failed: {exc}") from exc

        fields = _validate(data)
        level = ExperienceLevel.parse(fields["experienceLevel"])
        if fields["experienceLevel"] and level is None:
            log.warning("Dropping unknown experience level %r", fields["experienceLevel"])
        profile = CandidateProfile(
            skills=set(fields["skills"]),
            job_titles=list(dict.fromkeys(fields["jobTitles"])),
            education=fields["education"],
            experience_summary=fields["experience"],
            experience_level=level,
            preferred_locations=fields["preferredLocations"],
            summary=fields["summary"],
        )
        if profile.is_empty():
            raise ExtractionFailedError("Extraction produced no skills, titles or summary")
        log.info(
            "LLM extraction complete — skills=%d, titles=%d, level=%s",
            len(profile.skills), len(profile.job_titles),
            level.value if level else "-",
        )
        return profile


# ── Heuristic extraction ────────────────────────────────────────────────

_YEARS_RE = re.compile(r"(\d{1,2})\+?\s*(?:years?|yrs?)", re.IGNORECASE)

_COMMON_SKILLS = [
    "python", "java", "javascript", "typescript", "react", "node.js", "angular",
    "vue", "sql", "nosql", "mongodb", "postgresql", "mysql", "redis",
    "docker", "kubernetes", "aws", "gcp", "azure", "terraform", "ansible",
    "jenkins", "git", "linux", "ci/cd", "rest", "graphql", "microservices",
    "agile", "scrum", "jira", "excel", "power bi", "tableau", "sap",
    "salesforce", "recruitment", "talent acquisition", "onboarding", "payroll",
    "machine learning", "deep learning", "nlp", "data science", "pandas",
    "tensorflow", "pytorch", "spark", "kafka", "elasticsearch",
    "figma", "ui/ux", "communication", "leadership", "project management",
]

_TITLE_WORDS = [
    "engineer", "manager", "developer", "analyst", "designer", "consultant",
    "lead", "director", "specialist", "coordinator", "architect", "scientist",
    "recruiter", "administrator",
]

_DEGREE_RE = re.compile(
    r"^.*\b(?:b\.?s\.?c?|m\.?s\.?c?|b\.?a|m\.?a|bachelor|master|ph\.?d|mba|b\.?tech|m\.?tech)\b.*$",
    re.IGNORECASE | re.MULTILINE,
)

_CITIES = [
    "new york", "san francisco", "seattle", "austin", "boston", "chicago",
    "los angeles", "denver", "atlanta", "toronto", "london", "berlin",
    "bangalore", "hyderabad", "remote",
]


def _level_for_years(years: int) -> ExperienceLevel:
    if years >= 15:
        return ExperienceLevel.EXECUTIVE
    if years >= 10:
        return ExperienceLevel.LEAD
    if years >= 6:
        return ExperienceLevel.SENIOR
    if years >= 2:
        return ExperienceLevel.MID
    return ExperienceLevel.ENTRY


class HeuristicProfileExtractor:
    """Best-effort extraction without an LLM."""

    def extract(self, raw_resume_text: str) -> CandidateProfile:
        text = _require_text(raw_resume_text)
        low = text.lower()
        lines = text.splitlines()

        years = max((int(m.group(1)) for m in _YEARS_RE.finditer(text)), default=0)
        skills = {s for s in _COMMON_SKILLS if re.search(rf"(?<!\w){re.escape(s)}(?!\w)", low)}

        titles: list[str] = []
        for line in lines[:40]:
            stripped = line.strip(" \t-•|")
            if 3 < len(stripped) < 60 and any(w in stripped.lower() for w in _TITLE_WORDS):
                titles.append(stripped)
        titles = list(dict.fromkeys(titles))[:5]

        education = [m.group(0).strip() for m in _DEGREE_RE.finditer(text)][:3]
        locations = [c.title() for c in _CITIES if c in low]

        profile = CandidateProfile(
            skills=skills,
            job_titles=titles,
            education=education,
            experience_summary=f"{years} years of experience" if years else "",
            experience_level=_level_for_years(years) if years else None,
            preferred_locations=locations[:6],
        )
        if profile.is_empty():
            raise ExtractionFailedError("No skills, job titles or experience found in resume")
        log.info("Heuristic extraction complete — skills=%d, titles=%d", len(skills), len(titles))
        return profile


def build_extractor(
    settings: Settings, client: JSONCompleter | None = None
) -> ProfileExtractor | HeuristicProfileExtractor:
    """LLM extractor when a client (or API key) is available, heuristic otherwise."""
    client = client or LLMClient.from_settings(settings)
    if client is None:
        log.info("Parsing resumes with heuristic extractor")
        return HeuristicProfileExtractor()
    return ProfileExtractor(client)
