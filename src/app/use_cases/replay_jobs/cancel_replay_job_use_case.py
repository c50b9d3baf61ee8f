"""Cancel Replay Job Use Case

PENDING jobs are cancelled at once. Jobs currently held by a worker are
flagged and stop cooperatively after their in-flight batch.
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


class CancelReplayJobUseCase:

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
        """
        Cancel a replay job

        Args:
            job_id: ID of the job to cancel

        Returns:
            Result[ReplayJobDTO]: The job after the request, or
            JOB_NOT_FOUND / INVALID_JOB_STATE
        """
        async with self.uow:
            # 1. Load and check state
            job = await self.uow.replay_jobs.get_by_id(job_id)
            if not job:
                return Return.err(Error(code="JOB_NOT_FOUND", message="Replay job not found"))

            if job.is_terminal():
                return Return.err(Error(
                    code="INVALID_JOB_STATE",
                    message=f"Cannot cancel a job in {job.status} status",
                ))

            # 2. Idle job: take the control lease and cancel directly
            now = self.clock()
            acquired = await self.uow.replay_jobs.acquire_lease(
                job_id, self.lease_owner, now, now + timedelta(seconds=self.lease_ttl_seconds)
            )
            if acquired:
                job = await self.uow.replay_jobs.get_by_id(job_id)
                if job.is_terminal():
                    await self.uow.replay_jobs.release_lease(job_id, self.lease_owner)
                    await self.uow.commit()
                    return Return.err(Error(
                        code="INVALID_JOB_STATE",
                        message=f"Cannot cancel a job in {job.status} status",
                    ))
                previous_status = job.status
                job.mark_cancelled(now)
                await self.uow.replay_jobs.update(job)
                await self.uow.replay_history.append(ReplayJobHistory(
                    replay_job_id=job.id,
                    action=HistoryAction.ACTION_CANCELLED,
                    timestamp=now,
                    details={"reason": "Cancelled by user", "previous_status": ReplayJobStatus(previous_status).value},
                ))
                await self.uow.replay_jobs.release_lease(job_id, self.lease_owner)
                await self.uow.commit()
                logger.info(f"Replay job {job_id} cancelled")
                return Return.ok(ReplayJobDTO.from_entity(job))

            # 3. Executing elsewhere: cooperative cancellation
            requested = await self.uow.replay_jobs.request_cancellation(job_id)
            await self.uow.commit()
            if not requested:
                return Return.err(Error(
                    code="INVALID_JOB_STATE",
                    message="Replay job finished before it could be cancelled",
                ))

            job = await self.uow.replay_jobs.get_by_id(job_id)
            logger.info(f"Cancellation requested for running replay job {job_id}")
            return Return.ok(ReplayJobDTO.from_entity(job))
