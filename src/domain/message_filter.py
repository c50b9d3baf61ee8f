"""MessageFilter value objects

Stored as JSON on the replay job and parsed back into these models
before evaluation.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from src.domain.enums import KeyFilterType, ValueFilterType, FilterLogic


class KeyFilter(BaseModel):
    type: KeyFilterType
    value: str


class ValueFilter(BaseModel):
    type: ValueFilterType
    value: Optional[str] = None
    min_size: Optional[int] = None
    max_size: Optional[int] = None


class HeaderFilter(BaseModel):
    header_key: str
    header_value: Optional[str] = None
    exact_match: bool = True


class TimestampRangeFilter(BaseModel):
    start_timestamp: Optional[datetime] = None
    end_timestamp: Optional[datetime] = None


class MessageFilter(BaseModel):
    """
    Composite filter of up to four optional sub-filters.

    ``logic`` combines whichever sub-filters are present. Header clauses are
    always ANDed among themselves.
    """
    key_filter: Optional[KeyFilter] = None
    value_filter: Optional[ValueFilter] = None
    header_filters: List[HeaderFilter] = Field(default_factory=list)
    timestamp_range_filter: Optional[TimestampRangeFilter] = None
    logic: FilterLogic = FilterLogic.AND

    def is_empty(self) -> bool:
        return (
            self.key_filter is None
            and self.value_filter is None
            and not self.header_filters
            and self.timestamp_range_filter is None
        )
