from src.domain.base import BaseModel, generate_uuid, utc_now, as_naive_utc
from src.domain.enums import (
    ReplayJobStatus,
    TERMINAL_STATUSES,
    HistoryAction,
    ScheduleType,
    KeyFilterType,
    ValueFilterType,
    FilterLogic,
    TransformRuleType,
)
from src.domain.log_record import LogRecord
from src.domain.message_filter import (
    KeyFilter,
    ValueFilter,
    HeaderFilter,
    TimestampRangeFilter,
    MessageFilter,
)
from src.domain.message_transformation import TransformRule, MessageTransformation
from src.domain.replay_job_progress import ReplayJobProgress, PartitionProgress
from src.domain.replay_job import ReplayJob
from src.domain.replay_job_history import ReplayJobHistory

__all__ = [
    # Base
    "BaseModel",
    "generate_uuid",
    "utc_now",
    "as_naive_utc",
    # Enums
    "ReplayJobStatus",
    "TERMINAL_STATUSES",
    "HistoryAction",
    "ScheduleType",
    "KeyFilterType",
    "ValueFilterType",
    "FilterLogic",
    "TransformRuleType",
    # Value objects
    "LogRecord",
    "KeyFilter",
    "ValueFilter",
    "HeaderFilter",
    "TimestampRangeFilter",
    "MessageFilter",
    "TransformRule",
    "MessageTransformation",
    "ReplayJobProgress",
    "PartitionProgress",
    # Entities
    "ReplayJob",
    "ReplayJobHistory",
]
