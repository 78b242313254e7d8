"""Mock job source for offline runs and tests."""
from __future__ import annotations

from datetime import timedelta

from jobmatch.log import get_logger
from jobmatch.models import JobPosting, RemoteMode, utcnow
from jobmatch.sources.base import INGESTED_SOURCE, JobSource

log = get_logger(__name__)


class MockSource(JobSource):
    name = "mock"

    def search(self, query: str, locations: list[str], limit: int = 20) -> list[JobPosting]:
        titles = [t.strip() for t in query.split(" OR ") if t.strip()][:3]
        location = locations[0] if locations else "Remote"
        now = utcnow()
        log.info("MockSource generating sample jobs")
        mock_jobs = [
            JobPosting(
                title=titles[0] if titles else "Software Engineer",
                company="TechCorp",
                url="https://example.com/job/1",
                location=location,
                remote=RemoteMode.HYBRID,
                skills=["Python", "Kubernetes", "AWS"],
                description="Kubernetes, cloud, incident response. 5+ years.",
                posted_date=now - timedelta(days=2),
                source=INGESTED_SOURCE,
            ),
            JobPosting(
                title="Customer Reliability Engineer",
                company="CloudScale SaaS",
                url="https://example.com/job/2",
                location="Remote",
                remote=RemoteMode.REMOTE,
                skills=["SRE", "Distributed Systems"],
                description="SRE, distributed systems, customer-facing escalations.",
                posted_date=now - timedelta(days=7),
                source=INGESTED_SOURCE,
            ),
            JobPosting(
                title=titles[1] if len(titles) > 1 else "Technical Support Engineer",
                company="Enterprise Platform Inc",
                url="https://example.com/job/3",
                location=location,
                remote=RemoteMode.ONSITE,
                skills=["SQL", "Linux"],
                description="L3 support, root cause analysis, SaaS.",
                posted_date=now - timedelta(days=3),
                source=INGESTED_SOURCE,
            ),
        ]
        return mock_jobs[:limit]
