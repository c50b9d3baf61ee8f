"""Filter Engine

Pure predicate deciding whether a log record matches a MessageFilter.
Evaluation never raises: malformed patterns and undecodable values are
treated as non-matches and logged.
"""
import json
import logging
import re
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable, Iterator, List, Optional
from jsonpath_ng.exceptions import JsonPathParserError, JsonPathLexerError
from jsonpath_ng.ext import parse as parse_json_path
from src.domain.enums import FilterLogic, KeyFilterType, ValueFilterType
from src.domain.log_record import LogRecord
from src.domain.message_filter import (
    HeaderFilter,
    KeyFilter,
    MessageFilter,
    TimestampRangeFilter,
    ValueFilter,
)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def _compile_regex(pattern: str) -> "re.Pattern[str]":
    return re.compile(pattern)


@lru_cache(maxsize=256)
def _compile_json_path(expression: str):
    return parse_json_path(expression)


class FilterEngine:
    """
    Evaluates MessageFilter specs against records.

    Sub-filters are evaluated lazily: AND stops at the first failing
    predicate, OR at the first succeeding one.
    """

    def matches(self, record: LogRecord, message_filter: Optional[MessageFilter]) -> bool:
        if message_filter is None or message_filter.is_empty():
            return True

        predicates = self._predicates(record, message_filter)
        if message_filter.logic == FilterLogic.OR:
            return any(predicate() for predicate in predicates)
        return all(predicate() for predicate in predicates)

    def _predicates(
        self, record: LogRecord, message_filter: MessageFilter
    ) -> Iterator[Callable[[], bool]]:
        if message_filter.key_filter is not None:
            yield lambda: self.matches_key(record, message_filter.key_filter)
        if message_filter.value_filter is not None:
            yield lambda: self.matches_value(record, message_filter.value_filter)
        if message_filter.header_filters:
            yield lambda: self.matches_headers(record, message_filter.header_filters)
        if message_filter.timestamp_range_filter is not None:
            yield lambda: self.matches_timestamp(record, message_filter.timestamp_range_filter)

    def matches_key(self, record: LogRecord, key_filter: KeyFilter) -> bool:
        key = record.key
        if key is None:
            return False

        filter_type = key_filter.type
        if filter_type == KeyFilterType.EXACT:
            return key == key_filter.value
        elif filter_type == KeyFilterType.PREFIX:
            return key.startswith(key_filter.value)
        elif filter_type == KeyFilterType.CONTAINS:
            return key_filter.value in key
        elif filter_type == KeyFilterType.REGEX:
            return self._full_match(key_filter.value, key, "key")

        logger.warning(f"Unsupported key filter type: {filter_type}")
        return False

    def matches_value(self, record: LogRecord, value_filter: ValueFilter) -> bool:
        value = record.value
        if value is None:
            return False

        filter_type = value_filter.type
        if filter_type == ValueFilterType.CONTAINS:
            return value_filter.value is not None and value_filter.value in value
        elif filter_type == ValueFilterType.REGEX:
            return self._full_match(value_filter.value, value, "value")
        elif filter_type == ValueFilterType.JSON_PATH:
            return self._json_path_match(value_filter.value, value)
        elif filter_type == ValueFilterType.SIZE:
            size = len(value.encode("utf-8"))
            if value_filter.min_size is not None and size < value_filter.min_size:
                return False
            if value_filter.max_size is not None and size > value_filter.max_size:
                return False
            return True

        logger.warning(f"Unsupported value filter type: {filter_type}")
        return False

    def matches_headers(self, record: LogRecord, header_filters: List[HeaderFilter]) -> bool:
        if not header_filters:
            return True
        headers = record.headers
        if not headers:
            return False

        for clause in header_filters:
            if clause.header_key not in headers:
                return False
            if clause.header_value is None:
                continue
            actual = headers[clause.header_key]
            if actual is None:
                return False
            if clause.exact_match:
                if actual != clause.header_value:
                    return False
            elif clause.header_value not in actual:
                return False
        return True

    def matches_timestamp(self, record: LogRecord, range_filter: TimestampRangeFilter) -> bool:
        start = range_filter.start_timestamp
        end = range_filter.end_timestamp
        if start is not None and self._record_time(record, start) < start:
            return False
        if end is not None and self._record_time(record, end) > end:
            return False
        return True

    @staticmethod
    def _record_time(record: LogRecord, bound: datetime) -> datetime:
        # Naive bounds are local wall-clock time; aware bounds compare in UTC
        seconds = record.timestamp / 1000.0
        if bound.tzinfo is not None:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        return datetime.fromtimestamp(seconds)

    @staticmethod
    def _full_match(pattern: Optional[str], text: str, target: str) -> bool:
        if pattern is None:
            return False
        try:
            compiled = _compile_regex(pattern)
        except (re.error, RecursionError, OverflowError) as e:
            logger.warning(f"Invalid regex pattern for {target} filter '{pattern}': {e}")
            return False
        return compiled.fullmatch(text) is not None

    @staticmethod
    def _json_path_match(expression: Optional[str], value: str) -> bool:
        if not expression:
            return False
        try:
            document = json.loads(value)
            found = _compile_json_path(expression).find(document)
            return any(match.value is not None for match in found)
        except (ValueError, JsonPathParserError, JsonPathLexerError, TypeError, AttributeError) as e:
            logger.warning(f"Invalid JSONPath expression or non-JSON value for '{expression}': {e}")
            return False
        except Exception as e:
            logger.warning(f"JSONPath evaluation failed for '{expression}': {type(e).__name__}: {e}")
            return False
