"""Delete Replay Job Use Case

Removes a terminal job together with its history.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable
from libs.result import Result, Error, Return
from src.app.services.unit_of_work import UnitOfWork
from src.domain.base import utc_now


logger = logging.getLogger(__name__)


class DeleteReplayJobUseCase:

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

    async def execute(self, job_id: str) -> Result[bool]:
        async with self.uow:
            job = await self.uow.replay_jobs.get_by_id(job_id)
            if not job:
                return Return.err(Error(code="JOB_NOT_FOUND", message="Replay job not found"))

            if not job.is_terminal():
                return Return.err(Error(
                    code="INVALID_JOB_STATE",
                    message=f"Cannot delete a job in {job.status} status",
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

            removed = await self.uow.replay_history.delete_by_job(job_id)
            await self.uow.replay_jobs.delete(job_id)
            await self.uow.commit()

        logger.info(f"Replay job {job_id} deleted with {removed} history entries")
        return Return.ok(True)
