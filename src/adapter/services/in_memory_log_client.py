"""In-memory Log Client

Process-local implementation of the log used for development
(USE_IN_MEMORY_LOG_CLIENT) and tests. Supports retention (dropping the head of
a partition) and injecting failures into individual operations.
"""
import asyncio
import logging
import time
from collections import defaultdict
from typing import AsyncIterator, Dict, List, Optional, Tuple
from src.app.services.log_client import (
    LogClient,
    LogClientError,
    TopicNotFoundError,
    TransientLogError,
)
from src.domain.log_record import LogRecord

logger = logging.getLogger(__name__)


class _Partition:
    def __init__(self):
        self.base_offset = 0
        self.records: List[LogRecord] = []

    @property
    def high_water_mark(self) -> int:
        return self.base_offset + len(self.records)


class InMemoryLogClient(LogClient):
    """
    Dictionary backed log: topic -> partition -> records.

    Produced records are appended to the target topic (created on first write
    when ``auto_create_topics`` is set) on the same partition number as the
    source record, modulo the target's partition count.
    """

    def __init__(self, auto_create_topics: bool = True):
        self.auto_create_topics = auto_create_topics
        self._topics: Dict[str, List[_Partition]] = {}
        self._committed: Dict[Tuple[str, str, int], int] = {}
        self._failures: Dict[str, List[Exception]] = defaultdict(list)
        self._lock = asyncio.Lock()
        self.produced: List[Tuple[str, LogRecord]] = []

    # Test and development helpers

    def create_topic(self, topic: str, partitions: int = 1) -> None:
        if topic in self._topics:
            raise LogClientError(f"Topic '{topic}' already exists")
        self._topics[topic] = [_Partition() for _ in range(partitions)]

    def append(
        self,
        topic: str,
        partition: int,
        key: Optional[str] = None,
        value: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        timestamp: Optional[int] = None,
    ) -> int:
        """Append a record and return its offset"""
        target = self._partition(topic, partition)
        offset = target.high_water_mark
        target.records.append(LogRecord(
            topic=topic,
            partition=partition,
            offset=offset,
            timestamp=timestamp if timestamp is not None else int(time.time() * 1000),
            key=key,
            value=value,
            headers=dict(headers or {}),
        ))
        return offset

    def truncate_before(self, topic: str, partition: int, offset: int) -> None:
        """Drop records below ``offset``, as log retention would"""
        target = self._partition(topic, partition)
        drop = max(0, min(offset, target.high_water_mark) - target.base_offset)
        target.records = target.records[drop:]
        target.base_offset += drop

    def records(self, topic: str, partition: Optional[int] = None) -> List[LogRecord]:
        partitions = self._require_topic(topic)
        if partition is not None:
            return list(partitions[partition].records)
        return [record for p in partitions for record in p.records]

    def committed_offset(self, consumer_group: str, topic: str, partition: int) -> Optional[int]:
        return self._committed.get((consumer_group, topic, partition))

    def fail_next(self, operation: str, times: int = 1, error: Optional[Exception] = None) -> None:
        """Make the next ``times`` calls of ``operation`` raise ``error``"""
        for _ in range(times):
            self._failures[operation].append(
                error or TransientLogError(f"Injected failure in {operation}")
            )

    # LogClient interface

    async def topic_exists(self, topic: str) -> bool:
        self._maybe_fail("topic_exists")
        return topic in self._topics

    async def list_partitions(self, topic: str) -> List[int]:
        self._maybe_fail("list_partitions")
        return list(range(len(self._require_topic(topic))))

    async def beginning_offset(self, topic: str, partition: int) -> int:
        self._maybe_fail("beginning_offset")
        return self._partition(topic, partition).base_offset

    async def high_water_mark(self, topic: str, partition: int) -> int:
        self._maybe_fail("high_water_mark")
        return self._partition(topic, partition).high_water_mark

    async def offset_for_timestamp(
        self, topic: str, partition: int, timestamp_ms: int
    ) -> Optional[int]:
        self._maybe_fail("offset_for_timestamp")
        for record in self._partition(topic, partition).records:
            if record.timestamp >= timestamp_ms:
                return record.offset
        return None

    async def read_range(
        self,
        topic: str,
        partition: int,
        start_offset: int,
        end_offset: int,
        max_records: int,
    ) -> AsyncIterator[LogRecord]:
        self._maybe_fail("read_range")
        target = self._partition(topic, partition)
        first = max(start_offset, target.base_offset) - target.base_offset
        last = min(end_offset, target.high_water_mark) - target.base_offset
        for record in target.records[first:max(first, min(last, first + max_records))]:
            yield record

    async def produce(self, topic: str, record: LogRecord) -> None:
        self._maybe_fail("produce")
        async with self._lock:
            if topic not in self._topics:
                if not self.auto_create_topics:
                    raise TopicNotFoundError(topic)
                self.create_topic(topic)
            partition = record.partition % len(self._topics[topic])
            self.append(
                topic,
                partition,
                key=record.key,
                value=record.value,
                headers=record.headers,
                timestamp=record.timestamp,
            )
            self.produced.append((topic, record))

    async def commit_offset(
        self, consumer_group: str, topic: str, partition: int, offset: int
    ) -> None:
        self._maybe_fail("commit_offset")
        self._partition(topic, partition)
        self._committed[(consumer_group, topic, partition)] = offset
        logger.debug(f"Group '{consumer_group}' committed {topic}[{partition}]@{offset}")

    # Internals

    def _maybe_fail(self, operation: str) -> None:
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    def _require_topic(self, topic: str) -> List[_Partition]:
        partitions = self._topics.get(topic)
        if partitions is None:
            raise TopicNotFoundError(topic)
        return partitions

    def _partition(self, topic: str, partition: int) -> _Partition:
        partitions = self._require_topic(topic)
        if partition < 0 or partition >= len(partitions):
            raise LogClientError(f"Partition {partition} does not exist in topic '{topic}'")
        return partitions[partition]
