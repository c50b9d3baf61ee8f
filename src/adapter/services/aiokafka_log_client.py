"""Kafka Log Client

LogClient backed by aiokafka. A metadata consumer (no group) answers offset
and topic queries, each partition being replayed gets its own assigned
consumer (stopped once the replay releases the partition), and a shared
producer writes replayed records.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Tuple
from aiokafka import AIOKafkaConsumer, AIOKafkaProducer, TopicPartition
from aiokafka.errors import (
    KafkaConnectionError,
    KafkaError,
    KafkaTimeoutError,
    NodeNotReadyError,
    RequestTimedOutError,
    UnknownTopicOrPartitionError,
)
from src.app.services.log_client import (
    LogClient,
    LogClientError,
    TopicNotFoundError,
    TransientLogError,
)
from src.domain.log_record import LogRecord

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (
    KafkaConnectionError,
    KafkaTimeoutError,
    NodeNotReadyError,
    RequestTimedOutError,
    asyncio.TimeoutError,
)


def _encode(value: Optional[str]) -> Optional[bytes]:
    return value.encode("utf-8") if value is not None else None


def _decode(value: Optional[bytes]) -> Optional[str]:
    return value.decode("utf-8", errors="replace") if value is not None else None


class _PartitionReader:
    """Consumer assigned to a single partition, shared by concurrent reads of it"""

    def __init__(self, consumer: AIOKafkaConsumer):
        self.consumer = consumer
        self.lock = asyncio.Lock()
        self.closed = False


class AIOKafkaLogClient(LogClient):
    """LogClient implementation over a Kafka cluster"""

    def __init__(
        self,
        bootstrap_servers: str,
        client_id: str = "replay-service",
        fetch_timeout_ms: int = 1000,
        request_timeout_ms: int = 30000,
    ):
        """
        Initialize AIOKafkaLogClient.

        Args:
            bootstrap_servers: Comma separated broker addresses
            client_id: Client id reported to the brokers
            fetch_timeout_ms: How long a read waits for records before
                returning an empty batch
            request_timeout_ms: Broker request timeout
        """
        self.bootstrap_servers = [s.strip() for s in bootstrap_servers.split(",") if s.strip()]
        self.client_id = client_id
        self.fetch_timeout_ms = fetch_timeout_ms
        self.request_timeout_ms = request_timeout_ms

        self._metadata: Optional[AIOKafkaConsumer] = None
        self._producer: Optional[AIOKafkaProducer] = None
        self._readers: Dict[Tuple[str, int], _PartitionReader] = {}
        self._start_lock = asyncio.Lock()

    # Connection management

    def _consumer(self, group_id: Optional[str] = None) -> AIOKafkaConsumer:
        return AIOKafkaConsumer(
            bootstrap_servers=self.bootstrap_servers,
            client_id=self.client_id,
            group_id=group_id,
            enable_auto_commit=False,
            auto_offset_reset="earliest",
            request_timeout_ms=self.request_timeout_ms,
        )

    async def _metadata_consumer(self) -> AIOKafkaConsumer:
        async with self._start_lock:
            if self._metadata is None:
                consumer = self._consumer()
                await consumer.start()
                self._metadata = consumer
                logger.info(f"Connected to Kafka at {','.join(self.bootstrap_servers)}")
        return self._metadata

    async def _get_producer(self) -> AIOKafkaProducer:
        async with self._start_lock:
            if self._producer is None:
                producer = AIOKafkaProducer(
                    bootstrap_servers=self.bootstrap_servers,
                    client_id=self.client_id,
                    acks="all",
                    request_timeout_ms=self.request_timeout_ms,
                )
                await producer.start()
                self._producer = producer
        return self._producer

    async def _reader(self, tp: TopicPartition) -> _PartitionReader:
        key = (tp.topic, tp.partition)
        async with self._start_lock:
            reader = self._readers.get(key)
            if reader is None:
                consumer = self._consumer()
                await consumer.start()
                consumer.assign([tp])
                reader = _PartitionReader(consumer)
                self._readers[key] = reader
        return reader

    async def _fetch(self, tp: TopicPartition, start_offset: int, max_records: int) -> dict:
        while True:
            reader = await self._reader(tp)
            async with reader.lock:
                # Released while waiting for the lock; a fresh reader is started
                if reader.closed:
                    continue
                reader.consumer.seek(tp, start_offset)
                return await reader.consumer.getmany(
                    tp, timeout_ms=self.fetch_timeout_ms, max_records=max_records
                )

    async def release(self, topic: str, partitions: List[int]) -> None:
        for partition in partitions:
            async with self._start_lock:
                reader = self._readers.pop((topic, partition), None)
            if reader is None:
                continue
            async with reader.lock:
                reader.closed = True
                async with self._translate_errors("release"):
                    await reader.consumer.stop()
            logger.debug(f"Stopped reader of '{topic}'[{partition}]")

    async def close(self) -> None:
        consumers = [reader.consumer for reader in self._readers.values()]
        if self._metadata is not None:
            consumers.append(self._metadata)
        for consumer in consumers:
            await consumer.stop()
        if self._producer is not None:
            await self._producer.stop()
        self._readers.clear()
        self._metadata = None
        self._producer = None

    @asynccontextmanager
    async def _translate_errors(self, operation: str):
        """Map aiokafka errors onto the LogClient error hierarchy"""
        try:
            yield
        except UnknownTopicOrPartitionError as e:
            raise LogClientError(f"{operation}: unknown topic or partition ({e})") from e
        except TRANSIENT_ERRORS as e:
            raise TransientLogError(f"{operation}: {type(e).__name__} {e}") from e
        except KafkaError as e:
            raise LogClientError(f"{operation}: {type(e).__name__} {e}") from e

    # LogClient interface

    async def topic_exists(self, topic: str) -> bool:
        async with self._translate_errors("topic_exists"):
            consumer = await self._metadata_consumer()
            topics = await consumer.topics()
            return topic in topics

    async def list_partitions(self, topic: str) -> List[int]:
        async with self._translate_errors("list_partitions"):
            consumer = await self._metadata_consumer()
            if topic not in await consumer.topics():
                raise TopicNotFoundError(topic)
            partitions = consumer.partitions_for_topic(topic) or set()
            return sorted(partitions)

    async def beginning_offset(self, topic: str, partition: int) -> int:
        tp = TopicPartition(topic, partition)
        async with self._translate_errors("beginning_offset"):
            consumer = await self._metadata_consumer()
            offsets = await consumer.beginning_offsets([tp])
            return offsets[tp]

    async def high_water_mark(self, topic: str, partition: int) -> int:
        tp = TopicPartition(topic, partition)
        async with self._translate_errors("high_water_mark"):
            consumer = await self._metadata_consumer()
            offsets = await consumer.end_offsets([tp])
            return offsets[tp]

    async def offset_for_timestamp(
        self, topic: str, partition: int, timestamp_ms: int
    ) -> Optional[int]:
        tp = TopicPartition(topic, partition)
        async with self._translate_errors("offset_for_timestamp"):
            consumer = await self._metadata_consumer()
            offsets = await consumer.offsets_for_times({tp: timestamp_ms})
            found = offsets.get(tp)
            return found.offset if found is not None else None

    async def read_range(
        self,
        topic: str,
        partition: int,
        start_offset: int,
        end_offset: int,
        max_records: int,
    ) -> AsyncIterator[LogRecord]:
        tp = TopicPartition(topic, partition)
        async with self._translate_errors("read_range"):
            batches = await self._fetch(tp, start_offset, max_records)
        for message in batches.get(tp, []):
            if message.offset < start_offset:
                continue
            if message.offset >= end_offset:
                break
            yield LogRecord(
                topic=message.topic,
                partition=message.partition,
                offset=message.offset,
                timestamp=message.timestamp,
                key=_decode(message.key),
                value=_decode(message.value),
                headers={name: _decode(raw) or "" for name, raw in (message.headers or ())},
            )

    async def produce(self, topic: str, record: LogRecord) -> None:
        async with self._translate_errors("produce"):
            producer = await self._get_producer()
            await producer.send_and_wait(
                topic,
                value=_encode(record.value),
                key=_encode(record.key),
                headers=[(name, _encode(value) or b"") for name, value in record.headers.items()],
                timestamp_ms=record.timestamp,
            )

    async def commit_offset(
        self, consumer_group: str, topic: str, partition: int, offset: int
    ) -> None:
        tp = TopicPartition(topic, partition)
        async with self._translate_errors("commit_offset"):
            consumer = self._consumer(group_id=consumer_group)
            await consumer.start()
            try:
                consumer.assign([tp])
                await consumer.commit({tp: offset})
            finally:
                await consumer.stop()
