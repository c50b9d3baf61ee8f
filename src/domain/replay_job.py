"""ReplayJob Entity

A request to re-deliver a bounded range of records from a source topic
to a target topic, or to reposition a consumer group's committed offsets.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlmodel import Field, Column
from sqlalchemy import JSON as SQLJSON, String
from src.domain.base import BaseModel, generate_uuid, utc_now
from src.domain.enums import ReplayJobStatus, ScheduleType, TERMINAL_STATUSES
from src.domain.message_filter import MessageFilter
from src.domain.message_transformation import MessageTransformation
from src.domain.replay_job_progress import ReplayJobProgress

ERROR_MESSAGE_MAX_LENGTH = 2000


class ReplayJob(BaseModel, table=True):
    """
    ReplayJob Entity

    JSON columns (partitions, filters, transformation, progress) are always
    reassigned, never mutated in place, so the ORM sees the change.
    """
    __tablename__ = "replay_jobs"

    id: str = Field(default_factory=generate_uuid, primary_key=True)

    # Source
    cluster_id: str = Field(index=True, nullable=False)
    source_topic: str = Field(index=True, nullable=False)
    partitions: Optional[List[int]] = Field(default=None, sa_column=Column(SQLJSON))

    # Range
    start_offset: Optional[int] = Field(default=None)
    start_timestamp: Optional[datetime] = Field(default=None)
    end_offset: Optional[int] = Field(default=None)
    end_timestamp: Optional[datetime] = Field(default=None)

    # Destination (exactly one)
    target_topic: Optional[str] = Field(default=None)
    consumer_group_id: Optional[str] = Field(default=None)

    # Pipeline configuration
    filters: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(SQLJSON))
    transformation: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(SQLJSON))

    # State
    status: ReplayJobStatus = Field(default=ReplayJobStatus.PENDING, nullable=False, index=True)
    progress: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(SQLJSON))
    error_message: Optional[str] = Field(default=None, sa_column=Column(String(ERROR_MESSAGE_MAX_LENGTH)))
    cancel_requested: bool = Field(default=False, nullable=False)

    # Schedule
    schedule_type: ScheduleType = Field(default=ScheduleType.NONE, nullable=False)
    scheduled_at: Optional[datetime] = Field(default=None)
    schedule_cron: Optional[str] = Field(default=None)
    schedule_timezone: str = Field(default="UTC", nullable=False)
    next_scheduled_run: Optional[datetime] = Field(default=None, index=True)
    last_scheduled_run: Optional[datetime] = Field(default=None)

    # Retry
    max_retries: int = Field(default=0, nullable=False)
    retry_delay_seconds: int = Field(default=60, nullable=False)
    retry_count: int = Field(default=0, nullable=False)
    next_retry_at: Optional[datetime] = Field(default=None)

    # Execution lease
    lease_owner: Optional[str] = Field(default=None)
    lease_expires_at: Optional[datetime] = Field(default=None)

    # Audit
    created_by: Optional[str] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=utc_now, nullable=False, index=True)
    updated_at: datetime = Field(default_factory=utc_now, nullable=False)
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)

    class Config:
        use_enum_values = True

    # Queries

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_recurring(self) -> bool:
        return self.schedule_type == ScheduleType.RECURRING

    def is_scheduled(self) -> bool:
        return self.schedule_type != ScheduleType.NONE

    def is_due(self, now: datetime) -> bool:
        """PENDING and neither a retry delay nor a schedule holds it back"""
        if self.status != ReplayJobStatus.PENDING:
            return False
        if self.next_retry_at is not None and self.next_retry_at > now:
            return False
        if self.next_scheduled_run is not None and self.next_scheduled_run > now:
            return False
        return True

    def has_live_lease(self, now: datetime) -> bool:
        return (
            self.lease_owner is not None
            and self.lease_expires_at is not None
            and self.lease_expires_at > now
        )

    def parsed_filter(self) -> Optional[MessageFilter]:
        if not self.filters:
            return None
        return MessageFilter.model_validate(self.filters)

    def parsed_transformation(self) -> Optional[MessageTransformation]:
        if not self.transformation:
            return None
        return MessageTransformation.model_validate(self.transformation)

    def progress_snapshot(self) -> ReplayJobProgress:
        if not self.progress:
            return ReplayJobProgress()
        return ReplayJobProgress.model_validate(self.progress)

    # Business logic methods

    def mark_running(self, now: datetime) -> None:
        """Start an execution attempt and record the schedule firing"""
        self.status = ReplayJobStatus.RUNNING
        self.started_at = now
        self.completed_at = None
        self.error_message = None
        self.next_retry_at = None
        self.progress = ReplayJobProgress().model_dump()
        if self.is_scheduled():
            self.last_scheduled_run = now
            self.next_scheduled_run = None
        self.updated_at = now

    def update_progress(self, progress: ReplayJobProgress, now: datetime) -> None:
        self.progress = progress.model_dump()
        self.updated_at = now

    def mark_completed(self, now: datetime) -> None:
        self.status = ReplayJobStatus.COMPLETED
        self.completed_at = now
        self.updated_at = now

    def mark_failed(self, error_message: str, now: datetime) -> None:
        self.status = ReplayJobStatus.FAILED
        self.error_message = (error_message or "Unknown error")[:ERROR_MESSAGE_MAX_LENGTH]
        self.completed_at = now
        self.updated_at = now

    def mark_cancelled(self, now: datetime) -> None:
        self.status = ReplayJobStatus.CANCELLED
        self.cancel_requested = False
        self.completed_at = now
        self.updated_at = now

    def schedule_retry(self, next_retry_at: datetime, now: datetime) -> None:
        """Re-queue after a failed attempt, consuming one unit of retry budget"""
        self.status = ReplayJobStatus.PENDING
        self.retry_count += 1
        self.next_retry_at = next_retry_at
        self.updated_at = now

    def rearm(self, next_run: datetime, now: datetime) -> None:
        """Return a recurring (or rescheduled) job to PENDING for its next firing"""
        self.status = ReplayJobStatus.PENDING
        self.retry_count = 0
        self.next_retry_at = None
        self.next_scheduled_run = next_run
        self.updated_at = now

    def reset_for_manual_retry(self, now: datetime) -> None:
        self.status = ReplayJobStatus.PENDING
        self.retry_count = 0
        self.next_retry_at = None
        self.error_message = None
        self.cancel_requested = False
        self.completed_at = None
        self.updated_at = now
