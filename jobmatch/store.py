"""Catalog, candidate and match storage on SQLAlchemy (SQLite by default).

Datetimes are stored as naive UTC and handed back timezone-aware.
Posting expiry is applied on every write and every read, so a stale
``is_active`` column never leaks out of this module.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    or_,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from jobmatch.config import Settings
from jobmatch.log import get_logger
from jobmatch.models import (
    CandidateProfile,
    ExperienceLevel,
    JobPosting,
    MatchRecord,
    Preferences,
    RemoteMode,
    utcnow,
)

log = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class JobRow(Base):
    __tablename__ = "jobs"
    __table_args__ = (Index("idx_jobs_active_posted", "is_active", "posted_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    company: Mapped[str] = mapped_column(String(500), nullable=False)
    location: Mapped[str] = mapped_column(String(500), default="")
    remote: Mapped[str] = mapped_column(String(10), default=RemoteMode.ONSITE.value)
    salary_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    salary_max: Mapped[int | None] = mapped_column(Integer, nullable=True)
    skills: Mapped[list] = mapped_column(JSON, default=list)
    # "|react|graphql|" so skill containment is a single LIKE
    skills_text: Mapped[str] = mapped_column(Text, default="")
    experience_level: Mapped[str | None] = mapped_column(String(20), nullable=True)
    description: Mapped[str] = mapped_column(Text, default="")
    url: Mapped[str] = mapped_column(String(2000), nullable=False, unique=True)
    source: Mapped[str] = mapped_column(String(30), default="manual")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    posted_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class CandidateRow(Base):
    __tablename__ = "candidates"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    profile: Mapped[dict | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    preferences: Mapped[dict | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    profile_updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class MatchRow(Base):
    __tablename__ = "job_matches"
    __table_args__ = (
        UniqueConstraint("job_id", "candidate_id", name="uq_job_candidate_match"),
        Index("idx_candidate_score", "candidate_id", "score"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    candidate_id: Mapped[str] = mapped_column(
        ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    matched_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    notified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


def _to_db(dt: datetime | None) -> datetime | None:
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db(dt: datetime | None) -> datetime | None:
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=timezone.utc)


def _skills_text(skills: Iterable[str]) -> str:
    cleaned = [s.strip().lower() for s in skills if s and s.strip()]
    return "|" + "|".join(cleaned) + "|" if cleaned else ""


def _to_posting(row: JobRow, now: datetime) -> JobPosting:
    posting = JobPosting(
        id=row.id,
        title=row.title,
        company=row.company,
        url=row.url,
        description=row.description or "",
        location=row.location or "",
        remote=RemoteMode(row.remote) if row.remote else RemoteMode.ONSITE,
        salary_min=row.salary_min,
        salary_max=row.salary_max,
        skills=list(row.skills or []),
        experience_level=ExperienceLevel.parse(row.experience_level),
        source=row.source,
        is_active=row.is_active,
        posted_date=_from_db(row.posted_date),
        expires_at=_from_db(row.expires_at),
    )
    posting.is_active = posting.is_open(now)
    return posting


def _to_record(row: MatchRow) -> MatchRecord:
    return MatchRecord(
        job_id=row.job_id,
        candidate_id=row.candidate_id,
        score=row.score,
        matched_at=_from_db(row.matched_at),
        notified=row.notified,
    )


class MatchStore:
    def __init__(self, database_url: str) -> None:
        connect_args = {"timeout": 30} if database_url.startswith("sqlite") else {}
        self.engine: Engine = create_engine(database_url, connect_args=connect_args)
        self._session = sessionmaker(self.engine, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> MatchStore:
        store = cls(settings.database_url)
        store.create_all()
        return store

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    # ── catalog ──────────────────────────────────────────────────────────

    def add_posting(self, posting: JobPosting) -> JobPosting:
        now = utcnow()
        row = JobRow(
            title=posting.title,
            company=posting.company,
            location=posting.location,
            remote=posting.remote.value,
            salary_min=posting.salary_min,
            salary_max=posting.salary_max,
            skills=list(posting.skills),
            skills_text=_skills_text(posting.skills),
            experience_level=posting.experience_level.value if posting.experience_level else None,
            description=posting.description,
            url=posting.url,
            source=posting.source,
            is_active=posting.is_open(now),
            posted_date=_to_db(posting.posted_date),
            expires_at=_to_db(posting.expires_at),
        )
        with self._session.begin() as session:
            session.add(row)
            session.flush()
            return _to_posting(row, now)

    def get_posting(self, job_id: int) -> JobPosting | None:
        with self._session() as session:
            row = session.get(JobRow, job_id)
            return _to_posting(row, utcnow()) if row else None

    def find_posting_by_url(self, url: str) -> JobPosting | None:
        with self._session() as session:
            row = session.scalars(select(JobRow).where(JobRow.url == url)).first()
            return _to_posting(row, utcnow()) if row else None

    def get_or_create_posting(self, posting: JobPosting) -> tuple[JobPosting, bool]:
        """Return the catalog row for ``posting.url``, inserting it if new."""
        existing = self.find_posting_by_url(posting.url)
        if existing:
            return existing, False
        try:
            return self.add_posting(posting), True
        except IntegrityError:
            # inserted concurrently by another request
            existing = self.find_posting_by_url(posting.url)
            if existing is None:
                raise
            return existing, False

    def query_postings(
        self,
        *,
        skills: Iterable[str] = (),
        titles: Iterable[str] = (),
        locations: Iterable[str] = (),
        remote: RemoteMode | None = None,
        limit: int = 40,
    ) -> list[JobPosting]:
        """Active postings, newest first.

        *skills* and *titles* are OR-ed together (any hit qualifies);
        *locations* and *remote* are hard constraints when given.
        """
        now = utcnow()
        stmt = select(JobRow).where(
            JobRow.is_active.is_(True),
            or_(JobRow.expires_at.is_(None), JobRow.expires_at > _to_db(now)),
        )

        signal = [JobRow.skills_text.icontains(s, autoescape=True) for s in skills if s]
        signal += [JobRow.title.icontains(t, autoescape=True) for t in titles if t]
        if signal:
            stmt = stmt.where(or_(*signal))

        location_terms = [JobRow.location.icontains(loc, autoescape=True) for loc in locations if loc]
        if location_terms:
            stmt = stmt.where(or_(*location_terms))
        if remote is not None:
            stmt = stmt.where(JobRow.remote == remote.value)

        stmt = stmt.order_by(JobRow.posted_date.desc().nulls_last(), JobRow.id.desc()).limit(limit)
        with self._session() as session:
            return [_to_posting(row, now) for row in session.scalars(stmt)]

    def deactivate_posting(self, job_id: int) -> bool:
        with self._session.begin() as session:
            result = session.execute(
                update(JobRow).where(JobRow.id == job_id).values(is_active=False)
            )
            return result.rowcount > 0

    def cleanup_expired(self) -> int:
        """Flip the stored flag off for postings past their expiry."""
        with self._session.begin() as session:
            result = session.execute(
                update(JobRow)
                .where(JobRow.is_active.is_(True), JobRow.expires_at < _to_db(utcnow()))
                .values(is_active=False)
            )
        log.info("Deactivated %d expired jobs", result.rowcount)
        return result.rowcount

    # ── candidates ───────────────────────────────────────────────────────

    def save_profile(self, candidate_id: str, profile: CandidateProfile) -> None:
        """Replace the candidate's profile wholesale (no merge)."""
        with self._session.begin() as session:
            row = session.get(CandidateRow, candidate_id) or CandidateRow(id=candidate_id)
            row.profile = profile.to_dict()
            row.profile_updated_at = _to_db(utcnow())
            session.add(row)
        log.debug("Stored profile for candidate %s", candidate_id)

    def save_preferences(self, candidate_id: str, prefs: Preferences) -> None:
        with self._session.begin() as session:
            row = session.get(CandidateRow, candidate_id) or CandidateRow(id=candidate_id)
            row.preferences = prefs.to_dict()
            session.add(row)

    def get_profile(self, candidate_id: str) -> CandidateProfile | None:
        with self._session() as session:
            row = session.get(CandidateRow, candidate_id)
            if row is None or not row.profile:
                return None
            return CandidateProfile.from_dict(row.profile)

    def get_preferences(self, candidate_id: str) -> Preferences:
        with self._session() as session:
            row = session.get(CandidateRow, candidate_id)
            return Preferences.from_dict(row.preferences if row else None)

    def candidate_ids_with_profile(self) -> list[str]:
        with self._session() as session:
            stmt = select(CandidateRow.id).where(CandidateRow.profile.is_not(None)).order_by(CandidateRow.id)
            return list(session.scalars(stmt))

    # ── matches ──────────────────────────────────────────────────────────

    def upsert_match(
        self, job_id: int, candidate_id: str, score: int, matched_at: datetime | None = None
    ) -> None:
        """Insert or update the (job, candidate) match in one statement.

        The update branch sets score and matched_at only; ``notified`` keeps
        whatever value the row already has.
        """
        if self.engine.dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        else:
            from sqlalchemy.dialects.sqlite import insert

        stmt = insert(MatchRow).values(
            job_id=job_id,
            candidate_id=candidate_id,
            score=score,
            matched_at=_to_db(matched_at or utcnow()),
            notified=False,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["job_id", "candidate_id"],
            set_={"score": stmt.excluded.score, "matched_at": stmt.excluded.matched_at},
        )
        with self.engine.begin() as conn:
            conn.execute(stmt)

    def get_match(self, job_id: int, candidate_id: str) -> MatchRecord | None:
        with self._session() as session:
            row = session.scalars(
                select(MatchRow).where(
                    MatchRow.job_id == job_id, MatchRow.candidate_id == candidate_id
                )
            ).first()
            return _to_record(row) if row else None

    def matches_for_candidate(
        self, candidate_id: str, *, unnotified_only: bool = False
    ) -> list[tuple[MatchRecord, JobPosting]]:
        now = utcnow()
        stmt = (
            select(MatchRow, JobRow)
            .join(JobRow, JobRow.id == MatchRow.job_id)
            .where(MatchRow.candidate_id == candidate_id)
            .order_by(MatchRow.score.desc(), MatchRow.matched_at.desc())
        )
        if unnotified_only:
            stmt = stmt.where(MatchRow.notified.is_(False))
        with self._session() as session:
            return [(_to_record(m), _to_posting(j, now)) for m, j in session.execute(stmt)]

    def mark_notified(self, candidate_id: str, job_ids: Iterable[int]) -> int:
        """Set ``notified`` on the given matches; rows already notified are left alone."""
        ids = list(job_ids)
        if not ids:
            return 0
        with self._session.begin() as session:
            result = session.execute(
                update(MatchRow)
                .where(
                    MatchRow.candidate_id == candidate_id,
                    MatchRow.job_id.in_(ids),
                    MatchRow.notified.is_(False),
                )
                .values(notified=True)
            )
            return result.rowcount
