from libs.result import Result, Error, Return
from src.app.services.unit_of_work import UnitOfWork
from .dtos import ReplayJobHistoryEntryDTO, ReplayJobHistoryPageDTO


class GetReplayJobHistoryUseCase:
    """
    Use case: Get Replay Job History

    Returns one page of a job's history, oldest entry first.
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(
        self, job_id: str, limit: int = 100, offset: int = 0
    ) -> Result[ReplayJobHistoryPageDTO]:
        async with self.uow:
            job = await self.uow.replay_jobs.get_by_id(job_id)
            if not job:
                return Return.err(Error(code="JOB_NOT_FOUND", message="Replay job not found"))

            entries, total = await self.uow.replay_history.list_by_job(job_id, limit=limit, offset=offset)

        return Return.ok(ReplayJobHistoryPageDTO(
            items=[ReplayJobHistoryEntryDTO.from_entity(entry) for entry in entries],
            total=total,
            limit=limit,
            offset=offset,
        ))
