from .base import JobSource
from .adzuna import AdzunaSource
from .mock import MockSource
from .remotive import RemotiveSource

from jobmatch.config import Settings
from jobmatch.log import get_logger

log = get_logger(__name__)

__all__ = [
    "JobSource", "AdzunaSource", "MockSource", "RemotiveSource",
    "get_sources",
]


def get_sources(settings: Settings, *, include_remote: bool = True) -> list[JobSource]:
    """Ingestion sources available with the current credentials."""
    sources: list[JobSource] = []

    if settings.adzuna_app_id and settings.adzuna_app_key:
        sources.append(AdzunaSource(settings.adzuna_app_id, settings.adzuna_app_key, settings.adzuna_country))
        log.info("Registered source: Adzuna (%s)", settings.adzuna_country)

    # Remotive is free; CatalogQuery only asks it for candidates open to remote work
    if include_remote:
        sources.append(RemotiveSource())
        log.info("Registered source: Remotive (free, remote jobs)")

    if not sources:
        log.info("No ingestion sources configured")

    return sources
