"""Replay Job Runner

Executes one attempt of a replay job: resolves partition ranges, reads
batches from the source log, filters and transforms records, writes them to
the destination and checkpoints progress after every batch.
"""
import asyncio
import functools
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Tuple
from src.app.services.filter_engine import FilterEngine
from src.app.services.log_client import LogClient, LogClientError, TransientLogError
from src.app.services.progress_tracker import ProgressTracker
from src.app.services.retry_policy import RetryPolicy
from src.app.services.transformation_pipeline import TransformationError, TransformationPipeline
from src.app.services.unit_of_work import UnitOfWork
from src.domain.base import utc_now
from src.domain.enums import HistoryAction, ReplayJobStatus
from src.domain.log_record import LogRecord
from src.domain.message_filter import MessageFilter
from src.domain.message_transformation import MessageTransformation
from src.domain.replay_job import ReplayJob
from src.domain.replay_job_history import ReplayJobHistory

logger = logging.getLogger(__name__)


class ReplayAttemptError(Exception):
    """Unrecoverable failure of the current attempt"""


class LeaseLostError(Exception):
    """The execution lease was taken over by another worker"""


@dataclass
class PartitionRange:
    partition: int
    start: int
    end: int  # exclusive


@dataclass
class ReplayAttempt:
    """Mutable state shared by the partition tasks of one attempt"""
    job_id: str
    topic: str
    target_topic: Optional[str]
    consumer_group_id: Optional[str]
    message_filter: Optional[MessageFilter]
    transformation: Optional[MessageTransformation]
    tracker: ProgressTracker
    cancel_event: asyncio.Event
    lease_owner: Optional[str]
    positions: Dict[int, int] = field(default_factory=dict)
    checkpoint_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    cancelled: bool = False


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _epoch_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // timedelta(milliseconds=1)


class ReplayJobRunner:
    """
    Drives PENDING -> RUNNING -> {COMPLETED, FAILED, CANCELLED} for one attempt.

    Partitions are replayed concurrently (bounded by ``partition_concurrency``);
    within a partition records are written strictly in offset order.
    Cancellation is checked between batches.
    """

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        log_client: LogClient,
        filter_engine: Optional[FilterEngine] = None,
        transformation_pipeline: Optional[TransformationPipeline] = None,
        retry_policy: Optional[RetryPolicy] = None,
        batch_size: int = 500,
        partition_concurrency: int = 4,
        progress_window_seconds: float = 10.0,
        lease_ttl_seconds: int = 60,
        transient_retry_attempts: int = 3,
        transient_retry_base_delay: float = 1.0,
        empty_poll_backoff_seconds: float = 1.0,
        max_empty_polls: int = 5,
        clock: Callable[[], datetime] = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize ReplayJobRunner.

        Args:
            uow_factory: Creates a fresh UnitOfWork per transaction
            log_client: Source and destination log access
            batch_size: Records read per batch (progress/cancel granularity)
            partition_concurrency: Partitions replayed at the same time
            progress_window_seconds: Trailing window for throughput
            lease_ttl_seconds: Lease extension applied at each checkpoint
            transient_retry_attempts: Retries of a transient I/O error before the attempt fails
            transient_retry_base_delay: First backoff delay, doubled per retry
            empty_poll_backoff_seconds: First wait after an empty read, doubled per empty poll
            max_empty_polls: Consecutive empty reads tolerated before the attempt fails
        """
        self.uow_factory = uow_factory
        self.log_client = log_client
        self.filter_engine = filter_engine or FilterEngine()
        self.transformation_pipeline = transformation_pipeline or TransformationPipeline()
        self.retry_policy = retry_policy or RetryPolicy()
        self.batch_size = batch_size
        self.partition_concurrency = max(partition_concurrency, 1)
        self.progress_window_seconds = progress_window_seconds
        self.lease_ttl_seconds = lease_ttl_seconds
        self.transient_retry_attempts = transient_retry_attempts
        self.transient_retry_base_delay = transient_retry_base_delay
        self.empty_poll_backoff_seconds = empty_poll_backoff_seconds
        self.max_empty_polls = max_empty_polls
        self.clock = clock
        self.monotonic = monotonic

    async def run(
        self,
        job_id: str,
        cancel_event: Optional[asyncio.Event] = None,
        lease_owner: Optional[str] = None,
    ) -> Optional[ReplayJob]:
        """
        Execute one attempt of a job.

        Args:
            job_id: Job to execute; must be PENDING and due
            cancel_event: In-process cancellation signal
            lease_owner: Holder of the execution lease, renewed at each checkpoint

        Returns:
            Optional[ReplayJob]: The job in its final state, or None when no
            attempt was made (missing, not PENDING, not due, or lease lost)
        """
        cancel_event = cancel_event or asyncio.Event()
        job = await self._start(job_id, cancel_event)
        if job is None or job.status != ReplayJobStatus.RUNNING:
            return job if job is not None and job.status == ReplayJobStatus.CANCELLED else None

        attempt = ReplayAttempt(
            job_id=job.id,
            topic=job.source_topic,
            target_topic=job.target_topic,
            consumer_group_id=job.consumer_group_id,
            message_filter=None,
            transformation=None,
            tracker=ProgressTracker(self.progress_window_seconds, clock=self.monotonic),
            cancel_event=cancel_event,
            lease_owner=lease_owner,
        )

        try:
            # Corrupt filter/transformation JSON fails the attempt, not the worker
            attempt.message_filter = job.parsed_filter()
            attempt.transformation = job.parsed_transformation()

            ranges = await self._resolve_ranges(job)
            for partition_range in ranges:
                attempt.tracker.set_partition_range(
                    partition_range.partition, partition_range.start, partition_range.end
                )
                attempt.positions[partition_range.partition] = partition_range.start
            await self._checkpoint(attempt)

            await self._replay_partitions(attempt, ranges)

            if attempt.cancelled:
                return await self._finish(attempt, ReplayJobStatus.CANCELLED)

            if attempt.consumer_group_id:
                await self._commit_consumer_group(attempt, ranges)
            return await self._finish(attempt, ReplayJobStatus.COMPLETED)

        except LeaseLostError as e:
            logger.error(f"Replay job {job_id} abandoned: {e}")
            return None
        except (ReplayAttemptError, LogClientError) as e:
            logger.error(f"Replay job {job_id} attempt failed: {e}")
            return await self._finish(attempt, ReplayJobStatus.FAILED, str(e))
        except asyncio.CancelledError:
            logger.warning(f"Replay job {job_id} interrupted by shutdown")
            raise
        except Exception as e:
            logger.exception(f"Unexpected error in replay job {job_id}")
            return await self._finish(
                attempt, ReplayJobStatus.FAILED, f"Unexpected error: {type(e).__name__}: {e}"
            )
        finally:
            await self._release_partitions(attempt)

    # Lifecycle

    async def _start(self, job_id: str, cancel_event: asyncio.Event) -> Optional[ReplayJob]:
        async with self.uow_factory() as uow:
            job = await uow.replay_jobs.get_by_id(job_id)
            if job is None:
                logger.warning(f"Replay job {job_id} not found")
                return None
            if job.status != ReplayJobStatus.PENDING:
                logger.info(f"Replay job {job_id} is {job.status}, skipping")
                return job

            now = self.clock()
            if job.cancel_requested or cancel_event.is_set():
                job.mark_cancelled(now)
                await uow.replay_jobs.update(job)
                await uow.replay_history.append(self._history(
                    job.id, HistoryAction.ACTION_CANCELLED, now,
                    details={"reason": "Cancelled before start"},
                ))
                await uow.commit()
                logger.info(f"Replay job {job_id} cancelled before start")
                return job

            if not job.is_due(now):
                logger.info(f"Replay job {job_id} is not due yet, skipping")
                return job

            job.mark_running(now)
            await uow.replay_jobs.update(job)
            await uow.replay_history.append(self._history(
                job.id, HistoryAction.ACTION_STARTED, now,
                details={"attempt": job.retry_count + 1, "retry_count": job.retry_count},
            ))
            await uow.commit()

        logger.info(f"Replay job {job_id} started (topic={job.source_topic})")
        return job

    async def _finish(
        self,
        attempt: ReplayAttempt,
        status: ReplayJobStatus,
        error_message: Optional[str] = None,
    ) -> Optional[ReplayJob]:
        now = self.clock()
        snapshot = attempt.tracker.snapshot()
        details = {
            "messages_processed": snapshot.messages_processed,
            "messages_matched": snapshot.messages_matched,
            "messages_produced": snapshot.messages_produced,
            "messages_failed": snapshot.messages_failed,
        }

        async with self.uow_factory() as uow:
            if attempt.lease_owner:
                renewed = await uow.replay_jobs.acquire_lease(
                    attempt.job_id,
                    attempt.lease_owner,
                    now,
                    now + timedelta(seconds=self.lease_ttl_seconds),
                )
                if not renewed:
                    logger.error(
                        f"Replay job {attempt.job_id} abandoned: lease lost before recording {status.value}"
                    )
                    return None

            job = await uow.replay_jobs.get_by_id(attempt.job_id)
            if job is None:
                logger.warning(f"Replay job {attempt.job_id} was deleted during execution")
                return None

            job.update_progress(snapshot, now)
            if status == ReplayJobStatus.COMPLETED:
                job.mark_completed(now)
                action = HistoryAction.ACTION_COMPLETED
            elif status == ReplayJobStatus.CANCELLED:
                job.mark_cancelled(now)
                action = HistoryAction.ACTION_CANCELLED
            else:
                job.mark_failed(error_message, now)
                action = HistoryAction.ACTION_FAILED
                details["error"] = job.error_message

            await uow.replay_jobs.update(job)
            await uow.replay_history.append(self._history(
                job.id, action, now,
                message_count=snapshot.messages_processed,
                throughput=snapshot.throughput,
                details=details,
            ))
            await uow.commit()

        logger.info(
            f"Replay job {job.id} {job.status}: processed={snapshot.messages_processed}, "
            f"produced={snapshot.messages_produced}, failed={snapshot.messages_failed}"
        )
        return job

    # Range resolution

    async def _resolve_ranges(self, job: ReplayJob) -> List[PartitionRange]:
        topic = job.source_topic
        known = await self._io(
            functools.partial(self.log_client.list_partitions, topic),
            f"list partitions of '{topic}'",
        )
        if job.partitions:
            missing = sorted(set(job.partitions) - set(known))
            if missing:
                raise ReplayAttemptError(f"Partitions {missing} do not exist in topic '{topic}'")
            partitions = sorted(job.partitions)
        else:
            partitions = sorted(known)

        ranges = []
        for partition in partitions:
            beginning = await self._io(
                functools.partial(self.log_client.beginning_offset, topic, partition),
                f"beginning offset of '{topic}'[{partition}]",
            )
            high_water_mark = await self._io(
                functools.partial(self.log_client.high_water_mark, topic, partition),
                f"high-water mark of '{topic}'[{partition}]",
            )

            if job.start_offset is not None:
                start = job.start_offset
            elif job.start_timestamp is not None:
                start = await self._offset_for_timestamp(topic, partition, job.start_timestamp, high_water_mark)
            else:
                start = beginning

            if job.end_offset is not None:
                end = job.end_offset
            elif job.end_timestamp is not None:
                end = await self._offset_for_timestamp(topic, partition, job.end_timestamp, high_water_mark)
            else:
                end = high_water_mark

            if start < beginning:
                logger.warning(
                    f"Offsets {start}..{beginning - 1} of '{topic}'[{partition}] are no longer "
                    f"available, starting at {beginning}"
                )
                start = beginning
            ranges.append(PartitionRange(partition=partition, start=start, end=max(start, end)))
        return ranges

    async def _offset_for_timestamp(
        self, topic: str, partition: int, value: datetime, high_water_mark: int
    ) -> int:
        offset = await self._io(
            functools.partial(self.log_client.offset_for_timestamp, topic, partition, _epoch_millis(value)),
            f"offset lookup in '{topic}'[{partition}]",
        )
        return high_water_mark if offset is None else offset

    # Replay body

    async def _replay_partitions(self, attempt: ReplayAttempt, ranges: List[PartitionRange]) -> None:
        semaphore = asyncio.Semaphore(self.partition_concurrency)

        async def bounded(partition_range: PartitionRange) -> None:
            async with semaphore:
                await self._replay_partition(attempt, partition_range)

        tasks = [asyncio.create_task(bounded(r)) for r in ranges if r.start < r.end]
        if not tasks:
            return
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _replay_partition(self, attempt: ReplayAttempt, partition_range: PartitionRange) -> None:
        topic = attempt.topic
        partition = partition_range.partition
        position = partition_range.start
        empty_polls = 0

        while position < partition_range.end:
            if attempt.cancel_event.is_set():
                attempt.cancelled = True
            if attempt.cancelled:
                return

            batch = await self._io(
                functools.partial(self._read_batch, topic, partition, position, partition_range.end),
                f"read '{topic}'[{partition}] at {position}",
            )

            if not batch:
                next_position = await self._position_after_empty_read(topic, partition, position, partition_range.end)
                if next_position is not None:
                    position = next_position
                    attempt.positions[partition] = position
                    empty_polls = 0
                    continue
                empty_polls += 1
                if empty_polls > self.max_empty_polls:
                    raise ReplayAttemptError(
                        f"No records available in '{topic}'[{partition}] at offset {position} "
                        f"before end offset {partition_range.end}"
                    )
                await asyncio.sleep(
                    self.retry_policy.backoff(empty_polls - 1, self.empty_poll_backoff_seconds)
                )
                continue
            empty_polls = 0

            matched = produced = failed = 0
            for record in batch:
                record_matched, record_produced, record_failed = await self._process_record(attempt, record)
                matched += record_matched
                produced += record_produced
                failed += record_failed

            position = batch[-1].offset + 1
            attempt.positions[partition] = position
            attempt.tracker.record_batch(
                partition, len(batch), matched=matched, produced=produced, failed=failed, position=position
            )
            await self._checkpoint(attempt, partition, len(batch))

    async def _position_after_empty_read(
        self, topic: str, partition: int, position: int, end: int
    ) -> Optional[int]:
        """
        Decide where to continue after an empty read.

        Returns the offset to jump to when the gap is permanent (records
        removed by retention, or no records left before ``end``), or None
        when the log simply has not caught up yet.
        """
        beginning = await self._io(
            functools.partial(self.log_client.beginning_offset, topic, partition),
            f"beginning offset of '{topic}'[{partition}]",
        )
        if beginning > position:
            logger.warning(
                f"Offsets {position}..{beginning - 1} of '{topic}'[{partition}] were removed, skipping"
            )
            return min(beginning, end)

        high_water_mark = await self._io(
            functools.partial(self.log_client.high_water_mark, topic, partition),
            f"high-water mark of '{topic}'[{partition}]",
        )
        if high_water_mark >= end:
            return end
        return None

    async def _read_batch(self, topic: str, partition: int, start: int, end: int) -> List[LogRecord]:
        return [
            record
            async for record in self.log_client.read_range(topic, partition, start, end, self.batch_size)
        ]

    async def _process_record(self, attempt: ReplayAttempt, record: LogRecord) -> Tuple[int, int, int]:
        """Returns (matched, produced, failed) counts for one record"""
        try:
            if not self.filter_engine.matches(record, attempt.message_filter):
                return 0, 0, 0
        except Exception as e:
            logger.warning(
                f"Filter evaluation failed for {record.topic}[{record.partition}]@{record.offset}: {e}"
            )
            return 0, 0, 1

        if attempt.consumer_group_id:
            return 1, 0, 0

        try:
            output = self.transformation_pipeline.transform(record, attempt.transformation)
        except TransformationError as e:
            logger.warning(
                f"Skipping {record.topic}[{record.partition}]@{record.offset}: {e.message}"
            )
            return 1, 0, 1

        await self._io(
            functools.partial(self.log_client.produce, attempt.target_topic, output),
            f"produce to '{attempt.target_topic}'",
        )
        return 1, 1, 0

    async def _commit_consumer_group(self, attempt: ReplayAttempt, ranges: List[PartitionRange]) -> None:
        for partition_range in ranges:
            partition = partition_range.partition
            offset = attempt.positions.get(partition, partition_range.start)
            await self._io(
                functools.partial(
                    self.log_client.commit_offset,
                    attempt.consumer_group_id, attempt.topic, partition, offset,
                ),
                f"commit '{attempt.consumer_group_id}' on '{attempt.topic}'[{partition}]",
            )
            logger.info(
                f"Committed offset {offset} for group '{attempt.consumer_group_id}' "
                f"on '{attempt.topic}'[{partition}]"
            )

    # Checkpointing

    async def _checkpoint(
        self, attempt: ReplayAttempt, partition: Optional[int] = None, batch_count: int = 0
    ) -> None:
        """Persist progress, renew the lease and pick up cancellation requests"""
        async with attempt.checkpoint_lock:
            now = self.clock()
            snapshot = attempt.tracker.snapshot()
            async with self.uow_factory() as uow:
                if attempt.lease_owner:
                    renewed = await uow.replay_jobs.acquire_lease(
                        attempt.job_id,
                        attempt.lease_owner,
                        now,
                        now + timedelta(seconds=self.lease_ttl_seconds),
                    )
                    if not renewed:
                        raise LeaseLostError(f"Lease on replay job {attempt.job_id} was lost")

                job = await uow.replay_jobs.get_by_id(attempt.job_id)
                if job is None:
                    raise ReplayAttemptError("Replay job was deleted during execution")

                job.update_progress(snapshot, now)
                await uow.replay_jobs.update(job)
                if partition is not None:
                    await uow.replay_history.append(self._history(
                        job.id, HistoryAction.MESSAGE_PROCESSED, now,
                        message_count=batch_count,
                        throughput=snapshot.throughput,
                        details={
                            "partition": partition,
                            "position": attempt.positions.get(partition),
                            "messages_processed": snapshot.messages_processed,
                        },
                    ))
                await uow.commit()
                cancel_requested = job.cancel_requested

        if (cancel_requested or attempt.cancel_event.is_set()) and not attempt.cancelled:
            logger.info(f"Cancellation requested for replay job {attempt.job_id}")
            attempt.cancelled = True

    # Helpers

    async def _release_partitions(self, attempt: ReplayAttempt) -> None:
        partitions = sorted(attempt.positions)
        if not partitions:
            return
        try:
            await self.log_client.release(attempt.topic, partitions)
        except LogClientError as e:
            logger.warning(f"Failed to release readers of '{attempt.topic}' {partitions}: {e.message}")

    async def _io(self, operation: Callable[[], Awaitable], description: str):
        """Run a log operation, retrying transient errors with exponential backoff"""
        attempt = 0
        while True:
            try:
                return await operation()
            except TransientLogError as e:
                if attempt >= self.transient_retry_attempts:
                    raise ReplayAttemptError(
                        f"{description} failed after {attempt + 1} attempts: {e.message}"
                    ) from e
                delay = self.retry_policy.backoff(attempt, self.transient_retry_base_delay)
                logger.warning(
                    f"{description} failed (attempt {attempt + 1}/{self.transient_retry_attempts + 1}), "
                    f"retrying in {delay}s: {e.message}"
                )
                await asyncio.sleep(delay)
                attempt += 1

    @staticmethod
    def _history(
        job_id: str,
        action: HistoryAction,
        timestamp: datetime,
        message_count: int = 0,
        throughput: Optional[float] = None,
        details: Optional[dict] = None,
    ) -> ReplayJobHistory:
        return ReplayJobHistory(
            replay_job_id=job_id,
            action=action,
            message_count=message_count,
            throughput=throughput,
            timestamp=timestamp,
            details=details,
        )
