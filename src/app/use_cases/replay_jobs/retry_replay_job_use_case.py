"""Retry Replay Job Use Case

Manual retry of a FAILED job. Resets the automatic retry budget.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable
from libs.result import Result, Error, Return
from src.app.services.unit_of_work import UnitOfWork
from src.domain.base import utc_now
from src.domain.enums import HistoryAction, ReplayJobStatus
from src.domain.replay_job_history import ReplayJobHistory
from .dtos import ReplayJobDTO

logger = logging.getLogger(__name__)


class RetryReplayJobUseCase:

    def __init__(
        self,
        uow: UnitOfWork,
        lease_owner: str,
        lease_ttl_seconds: int = 30,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.uow = uow
        self.lease_owner = lease_owner
        self.lease_ttl_seconds = lease_ttl_seconds
        self.clock = clock

    async def execute(self, job_id: str) -> Result[ReplayJobDTO]:
        async with self.uow:
            job = await self.uow.replay_jobs.get_by_id(job_id)
            if not job:
                return Return.err(Error(code="JOB_NOT_FOUND", message="Replay job not found"))

            if job.status != ReplayJobStatus.FAILED:
                return Return.err(Error(
                    code="INVALID_JOB_STATE",
                    message=f"Only FAILED jobs can be retried (current status: {job.status})",
                ))

            now = self.clock()
            acquired = await self.uow.replay_jobs.acquire_lease(
                job_id, self.lease_owner, now, now + timedelta(seconds=self.lease_ttl_seconds)
            )
            if not acquired:
                return Return.err(Error(
                    code="JOB_BUSY",
                    message="Replay job is being processed by a worker",
                ))

            job = await self.uow.replay_jobs.get_by_id(job_id)
            if job.status != ReplayJobStatus.FAILED:
                await self.uow.replay_jobs.release_lease(job_id, self.lease_owner)
                await self.uow.commit()
                return Return.err(Error(
                    code="INVALID_JOB_STATE",
                    message=f"Only FAILED jobs can be retried (current status: {job.status})",
                ))

            previous_retry_count = job.retry_count
            job.reset_for_manual_retry(now)
            await self.uow.replay_jobs.update(job)
            await self.uow.replay_history.append(ReplayJobHistory(
                replay_job_id=job.id,
                action=HistoryAction.ACTION_RETRIED,
                timestamp=now,
                details={"manual": True, "previous_retry_count": previous_retry_count},
            ))
            await self.uow.replay_jobs.release_lease(job_id, self.lease_owner)
            await self.uow.commit()

        logger.info(f"Replay job {job_id} re-queued by manual retry")
        return Return.ok(ReplayJobDTO.from_entity(job))
