"""LogRecord value object

A single record read from (or written to) the distributed log.
"""
from dataclasses import dataclass, field, replace
from typing import Dict, Optional


@dataclass(frozen=True)
class LogRecord:
    topic: str
    partition: int
    offset: int
    timestamp: int  # epoch millis
    key: Optional[str] = None
    value: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def with_changes(self, **changes) -> "LogRecord":
        """Return a copy with the given fields replaced"""
        return replace(self, **changes)
