"""Request schemas for the Replay Jobs API"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from src.domain.enums import ScheduleType
from src.domain.message_filter import MessageFilter
from src.domain.message_transformation import MessageTransformation


class SubmitReplayJobRequest(BaseModel):
    """Request body for submitting a replay job"""
    cluster_id: str = Field(..., description="Cluster holding the source topic")
    source_topic: str
    partitions: Optional[List[int]] = Field(None, description="Defaults to every partition")
    start_offset: Optional[int] = None
    start_timestamp: Optional[datetime] = None
    end_offset: Optional[int] = Field(None, description="Exclusive upper bound")
    end_timestamp: Optional[datetime] = None
    target_topic: Optional[str] = None
    consumer_group_id: Optional[str] = None
    filters: Optional[MessageFilter] = None
    transformation: Optional[MessageTransformation] = None
    schedule_type: ScheduleType = ScheduleType.NONE
    scheduled_at: Optional[datetime] = None
    schedule_cron: Optional[str] = Field(None, description="Five-field cron expression")
    schedule_timezone: str = "UTC"
    max_retries: int = 0
    retry_delay_seconds: Optional[int] = None
