"""
SQLAlchemy database models.
Defines the Job and User tables.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from sqlalchemy import (
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from queuewizard.constants import DEFAULT_PRIORITY, JobStatus


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


_last_created_at: datetime | None = None


def next_created_at() -> datetime:
    """
    Creation timestamp for a new job.

    Strictly later than any value returned before in this process, so jobs
    submitted back to back never tie on created_at.
    """
    global _last_created_at
    now = utcnow()
    if _last_created_at is not None and now <= _last_created_at:
        now = _last_created_at + timedelta(microseconds=1)
    _last_created_at = now
    return now


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Job(Base):
    """
    Job model representing one pending HTTP request in the queue.

    This is the authoritative source of truth for job state. Rows are
    inserted by the API layer and mutated only by the execution engine:
    claim (pending -> processing, attempts + 1), complete, requeue, fail.

    Key constraints:
    - exactly one execution in flight per job (guaranteed by the atomic claim)
    - attempts is incremented only at claim time
    - completed implies result is set and error_message is cleared
    """

    __tablename__ = "jobs"

    # Primary key
    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
        nullable=False,
    )

    # Submitter, opaque to the engine
    owner_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    # Ordering: lower value is served first
    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_PRIORITY,
    )

    # Outbound request descriptor
    method: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )
    url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    # JSON object text, parsed at execution time
    headers: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="{}",
    )
    body: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, name="job_status", create_constraint=True, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=JobStatus.PENDING,
        index=True,
    )

    # Retry tracking
    attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # Outcome
    result: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        # Claim order: pending jobs by priority, then age
        Index("ix_jobs_claim_order", "status", "priority", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"Job(id={self.id}, status={self.status}, priority={self.priority}, "
            f"attempts={self.attempts}, {self.method} {self.url})"
        )


class User(Base):
    """
    Account that submits jobs.

    A job's owner_id is the string form of the owning user's id, as carried
    in the access token issued at sign-in.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    # Lowercased before storage
    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        unique=True,
    )
    # bcrypt hash, never the password itself
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"User(id={self.id}, email={self.email})"
