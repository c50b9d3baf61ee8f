"""Replay Job History Repository Implementation"""
from datetime import datetime
from typing import List, Tuple
from sqlalchemy import delete, func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.replay_job_history_repository import IReplayJobHistoryRepository
from src.domain.replay_job_history import ReplayJobHistory


class SqlAlchemyReplayJobHistoryRepository(IReplayJobHistoryRepository):
    """SQLAlchemy implementation of ReplayJobHistory repository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, entry: ReplayJobHistory) -> ReplayJobHistory:
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def list_by_job(
        self, job_id: str, limit: int = 100, offset: int = 0
    ) -> Tuple[List[ReplayJobHistory], int]:
        count_stmt = (
            select(func.count())
            .select_from(ReplayJobHistory)
            .where(ReplayJobHistory.replay_job_id == job_id)
        )
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(ReplayJobHistory)
            .where(ReplayJobHistory.replay_job_id == job_id)
            .order_by(ReplayJobHistory.timestamp.asc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def delete_by_job(self, job_id: str) -> int:
        stmt = delete(ReplayJobHistory).where(ReplayJobHistory.replay_job_id == job_id)
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def purge_before(self, cutoff: datetime) -> int:
        stmt = delete(ReplayJobHistory).where(ReplayJobHistory.timestamp < cutoff)
        result = await self.session.execute(stmt)
        return result.rowcount or 0
