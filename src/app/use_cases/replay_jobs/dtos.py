"""Replay Job DTOs

Data Transfer Objects for the replay job control surface.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from src.domain.enums import HistoryAction, ReplayJobStatus, ScheduleType
from src.domain.message_filter import MessageFilter
from src.domain.message_transformation import MessageTransformation
from src.domain.replay_job import ReplayJob
from src.domain.replay_job_history import ReplayJobHistory
from src.domain.replay_job_progress import ReplayJobProgress


class SubmitReplayJobCommandDTO(BaseModel):
    """Command DTO for submitting a replay job"""
    cluster_id: str
    source_topic: str
    partitions: Optional[List[int]] = None
    start_offset: Optional[int] = None
    start_timestamp: Optional[datetime] = None
    end_offset: Optional[int] = None
    end_timestamp: Optional[datetime] = None
    target_topic: Optional[str] = None
    consumer_group_id: Optional[str] = None
    filters: Optional[MessageFilter] = None
    transformation: Optional[MessageTransformation] = None
    schedule_type: ScheduleType = ScheduleType.NONE
    scheduled_at: Optional[datetime] = None
    schedule_cron: Optional[str] = None
    schedule_timezone: str = "UTC"
    max_retries: int = 0
    retry_delay_seconds: Optional[int] = None
    created_by: Optional[str] = None


class SubmitReplayJobResponseDTO(BaseModel):
    """Response DTO for a submitted replay job"""
    job_id: str
    status: ReplayJobStatus
    next_scheduled_run: Optional[datetime] = None


class ReplayJobDTO(BaseModel):
    """Response DTO describing a replay job"""
    id: str
    cluster_id: str
    source_topic: str
    partitions: Optional[List[int]] = None
    start_offset: Optional[int] = None
    start_timestamp: Optional[datetime] = None
    end_offset: Optional[int] = None
    end_timestamp: Optional[datetime] = None
    target_topic: Optional[str] = None
    consumer_group_id: Optional[str] = None
    filters: Optional[Dict[str, Any]] = None
    transformation: Optional[Dict[str, Any]] = None
    status: ReplayJobStatus
    progress: ReplayJobProgress
    cancel_requested: bool = False
    schedule_type: ScheduleType
    scheduled_at: Optional[datetime] = None
    schedule_cron: Optional[str] = None
    schedule_timezone: str = "UTC"
    next_scheduled_run: Optional[datetime] = None
    last_scheduled_run: Optional[datetime] = None
    max_retries: int
    retry_delay_seconds: int
    retry_count: int
    next_retry_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None

    @classmethod
    def from_entity(cls, job: ReplayJob) -> "ReplayJobDTO":
        return cls(
            id=job.id,
            cluster_id=job.cluster_id,
            source_topic=job.source_topic,
            partitions=job.partitions,
            start_offset=job.start_offset,
            start_timestamp=job.start_timestamp,
            end_offset=job.end_offset,
            end_timestamp=job.end_timestamp,
            target_topic=job.target_topic,
            consumer_group_id=job.consumer_group_id,
            filters=job.filters,
            transformation=job.transformation,
            status=job.status,
            progress=job.progress_snapshot(),
            cancel_requested=job.cancel_requested,
            schedule_type=job.schedule_type,
            scheduled_at=job.scheduled_at,
            schedule_cron=job.schedule_cron,
            schedule_timezone=job.schedule_timezone,
            next_scheduled_run=job.next_scheduled_run,
            last_scheduled_run=job.last_scheduled_run,
            max_retries=job.max_retries,
            retry_delay_seconds=job.retry_delay_seconds,
            retry_count=job.retry_count,
            next_retry_at=job.next_retry_at,
            created_by=job.created_by,
            created_at=job.created_at,
            updated_at=job.updated_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
            error_message=job.error_message,
        )


class ListReplayJobsQueryDTO(BaseModel):
    """Query DTO for listing replay jobs"""
    cluster_id: Optional[str] = None
    status: Optional[ReplayJobStatus] = None
    source_topic: Optional[str] = None
    created_by: Optional[str] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    limit: int = Field(default=50, ge=1, le=500)
    offset: int = Field(default=0, ge=0)


class ReplayJobListDTO(BaseModel):
    items: List[ReplayJobDTO]
    total: int
    limit: int
    offset: int


class ReplayJobHistoryEntryDTO(BaseModel):
    id: str
    replay_job_id: str
    action: HistoryAction
    message_count: int
    throughput: Optional[float] = None
    timestamp: datetime
    details: Optional[Dict[str, Any]] = None

    @classmethod
    def from_entity(cls, entry: ReplayJobHistory) -> "ReplayJobHistoryEntryDTO":
        return cls(
            id=entry.id,
            replay_job_id=entry.replay_job_id,
            action=entry.action,
            message_count=entry.message_count,
            throughput=entry.throughput,
            timestamp=entry.timestamp,
            details=entry.details,
        )


class ReplayJobHistoryPageDTO(BaseModel):
    items: List[ReplayJobHistoryEntryDTO]
    total: int
    limit: int
    offset: int
