"""
SQLAlchemy models backing the sewadar import pipeline.

``SewadarImportJob`` lets any web instance (or the Celery worker) read and
mutate job state, and ``BadgeSequence`` hands out badge suffixes atomically.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Enum, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel, db


class ImportJobStatus(str, enum.Enum):
    """Lifecycle states for a sewadar import job."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not ImportJobStatus.PROCESSING


class SewadarImportJob(BaseModel):
    """Persistent progress record for a single sewadar import job."""

    __tablename__ = "sewadar_import_jobs"

    id: Mapped[str] = mapped_column(db.String(64), primary_key=True)
    status: Mapped[ImportJobStatus] = mapped_column(
        Enum(ImportJobStatus, name="sewadar_import_job_status_enum"),
        nullable=False,
        default=ImportJobStatus.PROCESSING,
        index=True,
    )
    total: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    processed: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    created_count: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    updated_count: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    progress: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    errors_json: Mapped[list | None] = mapped_column(db.JSON, nullable=True)
    message: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    area_code: Mapped[str | None] = mapped_column(db.String(8), nullable=True)
    actor_id: Mapped[str | None] = mapped_column(db.String(64), nullable=True)
    started_at: Mapped[datetime] = mapped_column(db.DateTime(timezone=True), nullable=False)
    finished_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(
        db.DateTime(timezone=True),
        nullable=True,
        comment="Eviction deadline; set once the job reaches a terminal state.",
    )

    __table_args__ = (Index("idx_sewadar_import_jobs_expires_at", "expires_at"),)

    def __repr__(self):
        return f"<SewadarImportJob {self.id} ({self.status.value})>"


class BadgeSequence(BaseModel):
    """Last badge suffix handed out for a badge pattern (e.g. ``T1000GA``)."""

    __tablename__ = "badge_sequences"

    pattern: Mapped[str] = mapped_column(db.String(32), primary_key=True)
    last_value: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<BadgeSequence {self.pattern}={self.last_value}>"
