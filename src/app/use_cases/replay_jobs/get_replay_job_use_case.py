from libs.result import Result, Error, Return
from src.app.services.unit_of_work import UnitOfWork
from .dtos import ReplayJobDTO


class GetReplayJobUseCase:

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(self, job_id: str) -> Result[ReplayJobDTO]:
        async with self.uow:
            job = await self.uow.replay_jobs.get_by_id(job_id)
            if not job:
                return Return.err(Error(code="JOB_NOT_FOUND", message="Replay job not found"))
            return Return.ok(ReplayJobDTO.from_entity(job))
