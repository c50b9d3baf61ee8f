"""Log Client Interface

Abstract access to the distributed log (topics, partitions, offsets) with
the error hierarchy the replay runner reacts to.
"""
from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional
from src.domain.log_record import LogRecord


class LogClientError(Exception):
    """Base exception for all log client errors"""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TransientLogError(LogClientError):
    """Broker momentarily unreachable; the operation may succeed if retried"""


class TopicNotFoundError(LogClientError):
    """Raised when a topic does not exist on the cluster"""
    def __init__(self, topic: str):
        self.topic = topic
        super().__init__(f"Topic '{topic}' does not exist")


class LogClient(ABC):
    """
    Abstract interface over a topic/partition message log.

    Offsets are per partition. ``read_range`` end bounds are exclusive.
    """

    @abstractmethod
    async def topic_exists(self, topic: str) -> bool:
        pass

    @abstractmethod
    async def list_partitions(self, topic: str) -> List[int]:
        """
        List partition numbers of a topic.

        Raises:
            TopicNotFoundError: If the topic does not exist
        """
        pass

    @abstractmethod
    async def beginning_offset(self, topic: str, partition: int) -> int:
        """Earliest offset still available in the partition"""
        pass

    @abstractmethod
    async def high_water_mark(self, topic: str, partition: int) -> int:
        """Offset one past the last record currently available"""
        pass

    @abstractmethod
    async def offset_for_timestamp(
        self, topic: str, partition: int, timestamp_ms: int
    ) -> Optional[int]:
        """
        First offset whose record timestamp is >= timestamp_ms.

        Returns:
            Optional[int]: None when no such record exists yet
        """
        pass

    @abstractmethod
    def read_range(
        self,
        topic: str,
        partition: int,
        start_offset: int,
        end_offset: int,
        max_records: int,
    ) -> AsyncIterator[LogRecord]:
        """
        Read up to ``max_records`` currently available records in
        [start_offset, end_offset), in offset order.

        The sequence is finite and may be shorter than requested (or empty)
        when the log has nothing more to return right now. Calling again
        from any offset restarts the read there.
        """
        pass

    @abstractmethod
    async def produce(self, topic: str, record: LogRecord) -> None:
        """Write a record to ``topic`` and wait for the acknowledgement"""
        pass

    @abstractmethod
    async def commit_offset(
        self, consumer_group: str, topic: str, partition: int, offset: int
    ) -> None:
        """Set the committed offset of a consumer group for one partition"""
        pass

    async def release(self, topic: str, partitions: List[int]) -> None:
        """Drop per-partition read resources once a replay of them has finished"""
        return None

    async def close(self) -> None:
        """Release connections held by the client"""
        return None
