"""Replay Job Supervisor

Owns the registry of executing jobs, feeds due jobs to a pool of worker
coroutines, applies the retry policy and scheduler after each attempt, and
exposes the control surface (submit, cancel, retry, delete, queries).
"""
import asyncio
import logging
import os
import socket
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Set
from libs.result import Result, Error, Return
from src.app.services.log_client import LogClient
from src.app.services.replay_job_runner import ReplayJobRunner
from src.app.services.replay_job_validator import ReplayJobValidator
from src.app.services.retry_policy import RetryPolicy
from src.app.services.scheduler import ReplayScheduler, Schedule
from src.app.services.unit_of_work import UnitOfWork
from src.app.use_cases.replay_jobs import (
    CancelReplayJobUseCase,
    DeleteReplayJobUseCase,
    GetReplayJobHistoryUseCase,
    GetReplayJobUseCase,
    ListReplayJobsQueryDTO,
    ListReplayJobsUseCase,
    ReplayJobDTO,
    ReplayJobHistoryPageDTO,
    ReplayJobListDTO,
    RetryReplayJobUseCase,
    SubmitReplayJobCommandDTO,
    SubmitReplayJobResponseDTO,
    SubmitReplayJobUseCase,
)
from src.domain.base import generate_uuid, utc_now
from src.domain.enums import HistoryAction, ReplayJobStatus
from src.domain.replay_job import ReplayJob
from src.domain.replay_job_history import ReplayJobHistory

logger = logging.getLogger(__name__)

HISTORY_PURGE_INTERVAL = timedelta(hours=1)


def default_owner_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{generate_uuid()[:8]}"


class ReplayJobSupervisor:
    """
    Replay Job Supervisor

    At most one execution per job id: an in-process registry guarded by an
    asyncio.Lock, plus a persisted lease so that other processes sharing the
    store cannot run the same job concurrently.
    """

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        runner: ReplayJobRunner,
        log_client: LogClient,
        scheduler: ReplayScheduler,
        retry_policy: Optional[RetryPolicy] = None,
        validator: Optional[ReplayJobValidator] = None,
        worker_count: int = 2,
        poll_interval: float = 5.0,
        lease_ttl_seconds: int = 60,
        control_lease_ttl_seconds: int = 30,
        default_retry_delay_seconds: int = 60,
        history_retention_days: Optional[int] = None,
        owner_id: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize ReplayJobSupervisor.

        Args:
            uow_factory: Creates a fresh UnitOfWork per transaction
            runner: Executes single attempts
            log_client: Used to check source topics at submission
            scheduler: Next-run computation for scheduled jobs
            worker_count: Jobs executed concurrently by this process
            poll_interval: Seconds between scans for due jobs
            lease_ttl_seconds: Execution lease duration (renewed per batch)
            control_lease_ttl_seconds: Lease duration for cancel/retry/delete
            history_retention_days: Purge history older than this; None keeps everything
            owner_id: Identity of this process in lease columns
        """
        self.uow_factory = uow_factory
        self.runner = runner
        self.log_client = log_client
        self.scheduler = scheduler
        self.retry_policy = retry_policy or RetryPolicy()
        self.validator = validator or ReplayJobValidator(scheduler)
        self.worker_count = max(worker_count, 1)
        self.poll_interval = poll_interval
        self.lease_ttl_seconds = lease_ttl_seconds
        self.control_lease_ttl_seconds = control_lease_ttl_seconds
        self.default_retry_delay_seconds = default_retry_delay_seconds
        self.history_retention_days = history_retention_days
        self.owner_id = owner_id or default_owner_id()
        self.clock = clock

        self.running = False
        self._active: Dict[str, asyncio.Event] = {}
        self._lock = asyncio.Lock()
        self._queue: "asyncio.Queue[str]" = asyncio.Queue()
        self._queued: Set[str] = set()
        self._workers: List[asyncio.Task] = []
        self._last_history_purge: Optional[datetime] = None

    @property
    def execution_owner(self) -> str:
        return f"{self.owner_id}/exec"

    def _control_owner(self) -> str:
        return f"{self.owner_id}/control/{generate_uuid()[:8]}"

    # Worker loop

    async def start(self):
        """
        Start the supervisor.

        Spawns the worker pool, then polls for due jobs until stopped.
        """
        self.running = True
        self._workers = [
            asyncio.create_task(self._worker_loop(index)) for index in range(self.worker_count)
        ]
        logger.info(f"ReplayJobSupervisor started ({self.worker_count} workers, owner={self.owner_id})")

        try:
            while self.running:
                try:
                    await self.process_due_jobs()
                except Exception as e:
                    logger.error(f"Error polling replay jobs: {e}")

                await asyncio.sleep(self.poll_interval)
        finally:
            await self._stop_workers()

    async def stop(self):
        """Stop the supervisor."""
        self.running = False
        await self._stop_workers()
        logger.info("ReplayJobSupervisor stopped")

    async def _stop_workers(self):
        workers, self._workers = self._workers, []
        for worker in workers:
            worker.cancel()
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)

    async def _worker_loop(self, index: int):
        while True:
            job_id = await self._queue.get()
            self._queued.discard(job_id)
            try:
                await self.execute_job(job_id)
            except Exception as e:
                logger.error(f"Worker {index} failed executing replay job {job_id}: {e}")
            finally:
                self._queue.task_done()

    def enqueue(self, job_id: str) -> bool:
        if job_id in self._queued or job_id in self._active:
            return False
        self._queued.add(job_id)
        self._queue.put_nowait(job_id)
        return True

    async def process_due_jobs(self) -> int:
        """
        One polling pass: recover stale executions, re-arm recurring jobs,
        purge old history and queue every due job.

        Returns:
            int: Number of jobs queued by this pass
        """
        now = self.clock()
        await self._recover_stale_jobs(now)
        await self._rearm_recurring_jobs(now)
        await self._purge_history(now)

        async with self.uow_factory() as uow:
            due_jobs = await uow.replay_jobs.get_due_jobs(now)

        queued = 0
        for job in due_jobs:
            if self.enqueue(job.id):
                queued += 1
        if queued:
            logger.info(f"Queued {queued} due replay jobs")
        return queued

    # Execution

    async def execute_job(self, job_id: str) -> Optional[ReplayJob]:
        """
        Run one attempt of a job if nobody else is running it.

        Returns:
            Optional[ReplayJob]: The job after the attempt and its follow-up
            (retry or reschedule), or None if no attempt was made
        """
        cancel_event = asyncio.Event()
        async with self._lock:
            if job_id in self._active:
                logger.info(f"Replay job {job_id} is already executing")
                return None
            self._active[job_id] = cancel_event

        try:
            now = self.clock()
            async with self.uow_factory() as uow:
                acquired = await uow.replay_jobs.acquire_lease(
                    job_id,
                    self.execution_owner,
                    now,
                    now + timedelta(seconds=self.lease_ttl_seconds),
                )
                await uow.commit()
            if not acquired:
                logger.info(f"Replay job {job_id} is leased by another worker")
                return None

            try:
                job = await self.runner.run(job_id, cancel_event, self.execution_owner)
                if job is None:
                    return None
                return await self._after_attempt(job.id)
            finally:
                async with self.uow_factory() as uow:
                    await uow.replay_jobs.release_lease(job_id, self.execution_owner)
                    await uow.commit()
        finally:
            async with self._lock:
                self._active.pop(job_id, None)

    async def _after_attempt(self, job_id: str) -> Optional[ReplayJob]:
        """Apply the retry policy and scheduler to a job that just left RUNNING"""
        now = self.clock()
        async with self.uow_factory() as uow:
            job = await uow.replay_jobs.get_by_id(job_id)
            if job is None:
                return None

            if job.status == ReplayJobStatus.FAILED:
                if self.retry_policy.should_retry(job):
                    delay = self.retry_policy.retry_delay(job)
                    job.schedule_retry(self.retry_policy.next_retry_at(job, now), now)
                    await uow.replay_history.append(ReplayJobHistory(
                        replay_job_id=job.id,
                        action=HistoryAction.ACTION_RETRIED,
                        timestamp=now,
                        details={
                            "manual": False,
                            "retry_count": job.retry_count,
                            "max_retries": job.max_retries,
                            "delay_seconds": delay,
                        },
                    ))
                    logger.info(
                        f"Replay job {job.id} re-queued in {delay}s "
                        f"(retry {job.retry_count}/{job.max_retries})"
                    )
                elif job.is_recurring():
                    # Stays FAILED; the re-arm sweep revives it at the next firing
                    job.next_scheduled_run = self.scheduler.next_run(
                        Schedule.from_job(job), job.last_scheduled_run, now
                    )
                    logger.warning(
                        f"Replay job {job.id} exhausted retries, next recurrence at {job.next_scheduled_run}"
                    )
                else:
                    logger.warning(f"Replay job {job.id} failed permanently: {job.error_message}")
                    return job

            elif job.status == ReplayJobStatus.COMPLETED and job.is_scheduled():
                next_run = self.scheduler.next_run(Schedule.from_job(job), job.last_scheduled_run, now)
                if next_run is None:
                    job.next_scheduled_run = None
                else:
                    job.rearm(next_run, now)
                    logger.info(f"Replay job {job.id} rescheduled for {next_run}")
            else:
                return job

            await uow.replay_jobs.update(job)
            await uow.commit()
            return job

    async def _recover_stale_jobs(self, now: datetime) -> None:
        async with self.uow_factory() as uow:
            stale_jobs = await uow.replay_jobs.get_stale_running_jobs(now)

        for stale in stale_jobs:
            if stale.id in self._active:
                continue
            owner = self._control_owner()
            async with self.uow_factory() as uow:
                acquired = await uow.replay_jobs.acquire_lease(
                    stale.id, owner, now, now + timedelta(seconds=self.control_lease_ttl_seconds)
                )
                if not acquired:
                    continue
                job = await uow.replay_jobs.get_by_id(stale.id)
                if job is None or job.status != ReplayJobStatus.RUNNING:
                    await uow.replay_jobs.release_lease(stale.id, owner)
                    await uow.commit()
                    continue
                job.mark_failed("Execution lease expired", now)
                await uow.replay_jobs.update(job)
                await uow.replay_history.append(ReplayJobHistory(
                    replay_job_id=job.id,
                    action=HistoryAction.ACTION_FAILED,
                    message_count=job.progress_snapshot().messages_processed,
                    timestamp=now,
                    details={"error": job.error_message, "reason": "lease_expired"},
                ))
                await uow.commit()

            logger.warning(f"Replay job {stale.id} lost its worker, marked FAILED")
            try:
                await self._after_attempt(stale.id)
            finally:
                async with self.uow_factory() as uow:
                    await uow.replay_jobs.release_lease(stale.id, owner)
                    await uow.commit()

    async def _rearm_recurring_jobs(self, now: datetime) -> None:
        async with self.uow_factory() as uow:
            candidates = await uow.replay_jobs.get_recurring_jobs_to_rearm(now)

        for candidate in candidates:
            if candidate.id in self._active:
                continue
            owner = self._control_owner()
            async with self.uow_factory() as uow:
                acquired = await uow.replay_jobs.acquire_lease(
                    candidate.id, owner, now, now + timedelta(seconds=self.control_lease_ttl_seconds)
                )
                if not acquired:
                    continue
                job = await uow.replay_jobs.get_by_id(candidate.id)
                if (
                    job is not None
                    and job.status == ReplayJobStatus.FAILED
                    and job.is_recurring()
                    and job.next_scheduled_run is not None
                    and job.next_scheduled_run <= now
                ):
                    job.rearm(job.next_scheduled_run, now)
                    await uow.replay_jobs.update(job)
                    logger.info(f"Recurring replay job {job.id} re-armed after failure")
                await uow.replay_jobs.release_lease(candidate.id, owner)
                await uow.commit()

    async def _purge_history(self, now: datetime) -> None:
        if not self.history_retention_days:
            return
        if self._last_history_purge and now - self._last_history_purge < HISTORY_PURGE_INTERVAL:
            return
        cutoff = now - timedelta(days=self.history_retention_days)
        async with self.uow_factory() as uow:
            purged = await uow.replay_history.purge_before(cutoff)
            await uow.commit()
        self._last_history_purge = now
        if purged:
            logger.info(f"Purged {purged} replay history entries older than {cutoff}")

    # Control surface

    async def submit(self, command: SubmitReplayJobCommandDTO) -> Result[SubmitReplayJobResponseDTO]:
        use_case = SubmitReplayJobUseCase(
            self.uow_factory(),
            self.log_client,
            self.validator,
            self.scheduler,
            default_retry_delay_seconds=self.default_retry_delay_seconds,
            clock=self.clock,
        )
        result = await use_case.execute(command)
        if result.is_ok() and self.running and result.value.next_scheduled_run is None:
            self.enqueue(result.value.job_id)
        return result

    async def cancel(self, job_id: str) -> Result[ReplayJobDTO]:
        use_case = CancelReplayJobUseCase(
            self.uow_factory(),
            lease_owner=self._control_owner(),
            lease_ttl_seconds=self.control_lease_ttl_seconds,
            clock=self.clock,
        )
        result = await use_case.execute(job_id)
        if result.is_ok():
            async with self._lock:
                event = self._active.get(job_id)
            if event is not None:
                event.set()
        return result

    async def retry(self, job_id: str) -> Result[ReplayJobDTO]:
        if job_id in self._active:
            return Return.err(Error(code="JOB_BUSY", message="Replay job is being processed by a worker"))
        use_case = RetryReplayJobUseCase(
            self.uow_factory(),
            lease_owner=self._control_owner(),
            lease_ttl_seconds=self.control_lease_ttl_seconds,
            clock=self.clock,
        )
        result = await use_case.execute(job_id)
        if result.is_ok() and self.running:
            self.enqueue(job_id)
        return result

    async def delete(self, job_id: str) -> Result[bool]:
        if job_id in self._active:
            return Return.err(Error(code="JOB_BUSY", message="Replay job is being processed by a worker"))
        use_case = DeleteReplayJobUseCase(
            self.uow_factory(),
            lease_owner=self._control_owner(),
            lease_ttl_seconds=self.control_lease_ttl_seconds,
            clock=self.clock,
        )
        return await use_case.execute(job_id)

    async def get_job(self, job_id: str) -> Result[ReplayJobDTO]:
        return await GetReplayJobUseCase(self.uow_factory()).execute(job_id)

    async def list_jobs(self, query: ListReplayJobsQueryDTO) -> Result[ReplayJobListDTO]:
        return await ListReplayJobsUseCase(self.uow_factory()).execute(query)

    async def get_history(
        self, job_id: str, limit: int = 100, offset: int = 0
    ) -> Result[ReplayJobHistoryPageDTO]:
        return await GetReplayJobHistoryUseCase(self.uow_factory()).execute(job_id, limit, offset)

    def is_executing(self, job_id: str) -> bool:
        return job_id in self._active
