from typing import Dict, Optional
from pydantic import BaseModel, Field


class PartitionProgress(BaseModel):
    position: int
    end_offset: int


class ReplayJobProgress(BaseModel):
    """Progress snapshot embedded in the replay job record"""
    messages_processed: int = 0
    messages_total: Optional[int] = None
    messages_matched: int = 0
    messages_produced: int = 0
    messages_failed: int = 0
    throughput: float = 0.0
    estimated_seconds_remaining: Optional[float] = None
    # JSON object keys are strings, so partitions are keyed by str(partition)
    partitions: Dict[str, PartitionProgress] = Field(default_factory=dict)
