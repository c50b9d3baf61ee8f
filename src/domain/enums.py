from enum import Enum


class ReplayJobStatus(str, Enum):
    """Lifecycle status of a replay job"""
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = (
    ReplayJobStatus.COMPLETED,
    ReplayJobStatus.FAILED,
    ReplayJobStatus.CANCELLED,
)


class HistoryAction(str, Enum):
    """Lifecycle events recorded in the replay job history"""
    ACTION_STARTED = "ACTION_STARTED"
    MESSAGE_PROCESSED = "MESSAGE_PROCESSED"
    ACTION_COMPLETED = "ACTION_COMPLETED"
    ACTION_FAILED = "ACTION_FAILED"
    ACTION_CANCELLED = "ACTION_CANCELLED"
    ACTION_RETRIED = "ACTION_RETRIED"


class ScheduleType(str, Enum):
    NONE = "NONE"
    ONE_TIME = "ONE_TIME"
    RECURRING = "RECURRING"


class KeyFilterType(str, Enum):
    EXACT = "EXACT"
    PREFIX = "PREFIX"
    CONTAINS = "CONTAINS"
    REGEX = "REGEX"


class ValueFilterType(str, Enum):
    CONTAINS = "CONTAINS"
    REGEX = "REGEX"
    JSON_PATH = "JSON_PATH"
    SIZE = "SIZE"


class FilterLogic(str, Enum):
    AND = "AND"
    OR = "OR"


class TransformRuleType(str, Enum):
    """Rule kinds understood by the transformation pipeline (version 1)"""
    SET_KEY = "SET_KEY"
    REMOVE_KEY = "REMOVE_KEY"
    SET_VALUE = "SET_VALUE"
    REPLACE_VALUE = "REPLACE_VALUE"
    SET_HEADER = "SET_HEADER"
    REMOVE_HEADER = "REMOVE_HEADER"
