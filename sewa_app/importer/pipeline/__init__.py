"""Sewadar import pipeline."""

from __future__ import annotations

from .badges import BadgeAllocator, badge_pattern, is_temporary_badge, is_valid_badge_format, next_badge
from .batch import BatchProcessor, ChunkOutcome
from .jobs import DatabaseJobStore, ImportJob, InMemoryJobStore, JobNotFound, JobStore, RowError, compute_progress
from .matching import (
    BADGE_CONFLICT_MESSAGE,
    IndexedSewadar,
    MatchAction,
    MatchDecision,
    MatchResolver,
    build_dedup_key,
)
from .progress import JobStoreProgressSink, NullProgressSink, ProgressSink, stream_job_events
from .records import ImportRecord, normalize_badge_status, row_number_for
from .registry import EmptyImportError, ImportSubmission, JobRegistry
from .runner import ImportJobRunner
from .store import BulkWriteFailure, BulkWriteResult, SewadarStore, SqlAlchemySewadarStore
from .validation import ValidationResult, build_rules, validate_record

__all__ = [
    "BADGE_CONFLICT_MESSAGE",
    "BadgeAllocator",
    "BatchProcessor",
    "BulkWriteFailure",
    "BulkWriteResult",
    "ChunkOutcome",
    "DatabaseJobStore",
    "EmptyImportError",
    "ImportJob",
    "ImportJobRunner",
    "ImportRecord",
    "ImportSubmission",
    "IndexedSewadar",
    "InMemoryJobStore",
    "JobNotFound",
    "JobRegistry",
    "JobStore",
    "JobStoreProgressSink",
    "MatchAction",
    "MatchDecision",
    "MatchResolver",
    "NullProgressSink",
    "ProgressSink",
    "RowError",
    "SewadarStore",
    "SqlAlchemySewadarStore",
    "ValidationResult",
    "badge_pattern",
    "build_dedup_key",
    "build_rules",
    "compute_progress",
    "is_temporary_badge",
    "is_valid_badge_format",
    "next_badge",
    "normalize_badge_status",
    "row_number_for",
    "stream_job_events",
    "validate_record",
]
