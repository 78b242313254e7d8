"""Ingestion source interface and normalization helpers."""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from jobmatch.models import JobPosting, RemoteMode

INGESTED_SOURCE = "ai-scraped"

_HYBRID_RE = re.compile(r"\bhybrid\b", re.IGNORECASE)
_REMOTE_RE = re.compile(r"\b(?:remote|anywhere|work from home|wfh)\b", re.IGNORECASE)


class JobSource(ABC):
    name: str = "source"
    # only lists remote roles; skipped for candidates who want an office
    remote_only: bool = False

    @abstractmethod
    def search(self, query: str, locations: list[str], limit: int = 20) -> list[JobPosting]:
        pass


def infer_remote(*texts: str) -> RemoteMode:
    """Hybrid wins over remote: "remote-friendly, hybrid" postings still need an office."""
    joined = " ".join(t for t in texts if t)
    if _HYBRID_RE.search(joined):
        return RemoteMode.HYBRID
    if _REMOTE_RE.search(joined):
        return RemoteMode.REMOTE
    return RemoteMode.ONSITE


def parse_timestamp(value: str | None) -> datetime | None:
    """ISO-8601 as emitted by job boards ("2024-05-01T10:00:00Z" or naive)."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
