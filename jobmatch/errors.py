"""Error taxonomy of the matching engine."""
from __future__ import annotations


class JobMatchError(Exception):
    """Base class for every error raised by the engine."""


class InvalidInputError(JobMatchError, ValueError):
    """Caller passed input that violates a precondition (not retried)."""


class ExtractionFailedError(JobMatchError):
    """The extraction service returned no usable profile."""


class ProfileMissingError(JobMatchError):
    """Candidate has no extracted profile yet; a resume upload is needed."""

    def __init__(self, candidate_id: str) -> None:
        super().__init__(f"No resume profile for candidate {candidate_id!r}")
        self.candidate_id = candidate_id


class MatchingFailedError(JobMatchError):
    """Catalog query or scoring failed; wraps the underlying cause."""
