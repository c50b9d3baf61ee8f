from libs.result import Result, Return
from src.app.repositories.replay_job_repository import ReplayJobQuery
from src.app.services.unit_of_work import UnitOfWork
from src.domain.base import as_naive_utc
from .dtos import ListReplayJobsQueryDTO, ReplayJobDTO, ReplayJobListDTO


class ListReplayJobsUseCase:
    """List replay jobs filtered by cluster, status, topic, creator and creation time"""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(self, query: ListReplayJobsQueryDTO) -> Result[ReplayJobListDTO]:
        async with self.uow:
            jobs, total = await self.uow.replay_jobs.list(ReplayJobQuery(
                cluster_id=query.cluster_id,
                status=query.status,
                source_topic=query.source_topic,
                created_by=query.created_by,
                created_after=as_naive_utc(query.created_after),
                created_before=as_naive_utc(query.created_before),
                limit=query.limit,
                offset=query.offset,
            ))

        return Return.ok(ReplayJobListDTO(
            items=[ReplayJobDTO.from_entity(job) for job in jobs],
            total=total,
            limit=query.limit,
            offset=query.offset,
        ))
