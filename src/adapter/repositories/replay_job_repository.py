"""Replay Job Repository Implementation

SQLAlchemy implementation for managing ReplayJob entities. Lease changes are
single conditional UPDATE statements so that concurrent claimers cannot both
succeed.
"""
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import delete, func, or_, update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.replay_job_repository import IReplayJobRepository, ReplayJobQuery
from src.domain.enums import ReplayJobStatus, ScheduleType
from src.domain.replay_job import ReplayJob


class SqlAlchemyReplayJobRepository(IReplayJobRepository):
    """SQLAlchemy implementation of ReplayJob repository"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, job: ReplayJob) -> ReplayJob:
        self.session.add(job)
        await self.session.flush()
        await self.session.refresh(job)
        return job

    async def get_by_id(self, job_id: str) -> Optional[ReplayJob]:
        stmt = select(ReplayJob).where(ReplayJob.id == job_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def update(self, job: ReplayJob) -> ReplayJob:
        self.session.add(job)
        await self.session.flush()
        await self.session.refresh(job)
        return job

    async def delete(self, job_id: str) -> None:
        stmt = delete(ReplayJob).where(ReplayJob.id == job_id)
        await self.session.execute(stmt)
        await self.session.flush()

    async def list(self, query: ReplayJobQuery) -> Tuple[List[ReplayJob], int]:
        conditions = []
        if query.cluster_id:
            conditions.append(ReplayJob.cluster_id == query.cluster_id)
        if query.status:
            conditions.append(ReplayJob.status == query.status)
        if query.source_topic:
            conditions.append(ReplayJob.source_topic == query.source_topic)
        if query.created_by:
            conditions.append(ReplayJob.created_by == query.created_by)
        if query.created_after:
            conditions.append(ReplayJob.created_at >= query.created_after)
        if query.created_before:
            conditions.append(ReplayJob.created_at <= query.created_before)

        count_stmt = select(func.count()).select_from(ReplayJob).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(ReplayJob)
            .where(*conditions)
            .order_by(ReplayJob.created_at.desc())
            .offset(query.offset)
            .limit(query.limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def get_due_jobs(self, now: datetime, limit: int = 100) -> List[ReplayJob]:
        stmt = (
            select(ReplayJob)
            .where(
                ReplayJob.status == ReplayJobStatus.PENDING,
                or_(ReplayJob.next_retry_at.is_(None), ReplayJob.next_retry_at <= now),
                or_(ReplayJob.next_scheduled_run.is_(None), ReplayJob.next_scheduled_run <= now),
            )
            .order_by(ReplayJob.created_at.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_recurring_jobs_to_rearm(self, now: datetime) -> List[ReplayJob]:
        stmt = (
            select(ReplayJob)
            .where(
                ReplayJob.status == ReplayJobStatus.FAILED,
                ReplayJob.schedule_type == ScheduleType.RECURRING,
                ReplayJob.next_scheduled_run.is_not(None),
                ReplayJob.next_scheduled_run <= now,
            )
            .order_by(ReplayJob.next_scheduled_run.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_stale_running_jobs(self, now: datetime) -> List[ReplayJob]:
        stmt = select(ReplayJob).where(
            ReplayJob.status == ReplayJobStatus.RUNNING,
            or_(ReplayJob.lease_expires_at.is_(None), ReplayJob.lease_expires_at <= now),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def acquire_lease(
        self, job_id: str, owner: str, now: datetime, expires_at: datetime
    ) -> bool:
        stmt = (
            update(ReplayJob)
            .where(
                ReplayJob.id == job_id,
                or_(
                    ReplayJob.lease_owner.is_(None),
                    ReplayJob.lease_expires_at.is_(None),
                    ReplayJob.lease_expires_at <= now,
                    ReplayJob.lease_owner == owner,
                ),
            )
            .values(lease_owner=owner, lease_expires_at=expires_at)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def release_lease(self, job_id: str, owner: str) -> None:
        stmt = (
            update(ReplayJob)
            .where(ReplayJob.id == job_id, ReplayJob.lease_owner == owner)
            .values(lease_owner=None, lease_expires_at=None)
        )
        await self.session.execute(stmt)

    async def request_cancellation(self, job_id: str) -> bool:
        stmt = (
            update(ReplayJob)
            .where(
                ReplayJob.id == job_id,
                ReplayJob.status.in_([ReplayJobStatus.PENDING, ReplayJobStatus.RUNNING]),
            )
            .values(cancel_requested=True)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
