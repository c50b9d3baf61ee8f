"""ReplayJobHistory Entity

Append-only audit trail of replay job lifecycle events, keyed by
(replay_job_id, timestamp) for range scans.
"""
from datetime import datetime
from typing import Any, Dict, Optional
from sqlmodel import Field, Column
from sqlalchemy import JSON as SQLJSON, Index
from src.domain.base import BaseModel, generate_uuid, utc_now
from src.domain.enums import HistoryAction


class ReplayJobHistory(BaseModel, table=True):
    __tablename__ = "replay_job_history"
    __table_args__ = (
        Index("ix_replay_job_history_job_timestamp", "replay_job_id", "timestamp"),
    )

    id: str = Field(default_factory=generate_uuid, primary_key=True)
    replay_job_id: str = Field(foreign_key="replay_jobs.id", nullable=False)
    action: HistoryAction = Field(nullable=False)
    message_count: int = Field(default=0, nullable=False)
    throughput: Optional[float] = Field(default=None)
    timestamp: datetime = Field(default_factory=utc_now, nullable=False)
    details: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(SQLJSON))

    class Config:
        use_enum_values = True
