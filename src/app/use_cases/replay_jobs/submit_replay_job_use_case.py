"""Submit Replay Job Use Case

Validates a replay job specification and stores it as PENDING.
"""
import logging
from datetime import datetime
from typing import Callable
from libs.result import Result, Error, Return
from src.app.services.log_client import LogClient, LogClientError
from src.app.services.replay_job_validator import ReplayJobValidator
from src.app.services.scheduler import ReplayScheduler, Schedule
from src.app.services.unit_of_work import UnitOfWork
from src.domain.base import as_naive_utc, utc_now
from src.domain.enums import ReplayJobStatus
from src.domain.replay_job import ReplayJob
from .dtos import SubmitReplayJobCommandDTO, SubmitReplayJobResponseDTO

logger = logging.getLogger(__name__)


class SubmitReplayJobUseCase:
    """
    Use case: Submit Replay Job

    Invalid specifications are rejected synchronously and never stored.
    Scheduled jobs are stored with next_scheduled_run set and wait for it.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        log_client: LogClient,
        validator: ReplayJobValidator,
        scheduler: ReplayScheduler,
        default_retry_delay_seconds: int = 60,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.uow = uow
        self.log_client = log_client
        self.validator = validator
        self.scheduler = scheduler
        self.default_retry_delay_seconds = default_retry_delay_seconds
        self.clock = clock

    async def execute(self, command: SubmitReplayJobCommandDTO) -> Result[SubmitReplayJobResponseDTO]:
        now = self.clock()

        # 1. Build the job from the command
        job = ReplayJob(
            cluster_id=command.cluster_id,
            source_topic=command.source_topic,
            partitions=command.partitions,
            start_offset=command.start_offset,
            start_timestamp=as_naive_utc(command.start_timestamp),
            end_offset=command.end_offset,
            end_timestamp=as_naive_utc(command.end_timestamp),
            target_topic=command.target_topic or None,
            consumer_group_id=command.consumer_group_id or None,
            filters=command.filters.model_dump(mode="json") if command.filters else None,
            transformation=(
                command.transformation.model_dump(mode="json") if command.transformation else None
            ),
            status=ReplayJobStatus.PENDING,
            schedule_type=command.schedule_type,
            scheduled_at=as_naive_utc(command.scheduled_at),
            schedule_cron=command.schedule_cron,
            schedule_timezone=command.schedule_timezone or "UTC",
            max_retries=command.max_retries,
            retry_delay_seconds=(
                command.retry_delay_seconds
                if command.retry_delay_seconds is not None
                else self.default_retry_delay_seconds
            ),
            retry_count=0,
            created_by=command.created_by,
            created_at=now,
            updated_at=now,
        )

        # 2. Validate invariants and schedule
        validation = self.validator.validate(job, now)
        if validation.is_err():
            logger.info(f"Rejected replay job for topic '{command.source_topic}': {validation.error.reason}")
            return validation

        # 3. Source topic must exist
        try:
            exists = await self.log_client.topic_exists(job.source_topic)
        except LogClientError as e:
            return Return.err(Error(
                code="LOG_UNAVAILABLE",
                message="Could not reach the source cluster",
                reason=e.message,
            ))
        if not exists:
            return Return.err(Error(
                code="TOPIC_NOT_FOUND",
                message=f"Source topic '{job.source_topic}' does not exist",
            ))

        # 4. First firing for scheduled jobs
        job.next_scheduled_run = self.scheduler.next_run(Schedule.from_job(job), None, now)

        async with self.uow:
            job = await self.uow.replay_jobs.create(job)
            await self.uow.commit()

        logger.info(
            f"Replay job {job.id} submitted: {job.source_topic} -> "
            f"{job.target_topic or 'group ' + str(job.consumer_group_id)} "
            f"(schedule={job.schedule_type}, next_run={job.next_scheduled_run})"
        )
        return Return.ok(SubmitReplayJobResponseDTO(
            job_id=job.id,
            status=job.status,
            next_scheduled_run=job.next_scheduled_run,
        ))
