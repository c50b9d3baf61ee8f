from typing import Callable, Optional
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.services.unit_of_work import UnitOfWork
from src.adapter.repositories.replay_job_repository import SqlAlchemyReplayJobRepository
from src.adapter.repositories.replay_job_history_repository import SqlAlchemyReplayJobHistoryRepository


class SqlAlchemyUnitOfWork(UnitOfWork):
    """SQLAlchemy implementation of UnitOfWork pattern

    Opens a session from ``session_factory`` on enter and closes it on exit.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory
        self.session: Optional[AsyncSession] = None

    async def __aenter__(self):
        self.session = self.session_factory()
        # Initialize all repositories with the session
        self.replay_jobs = SqlAlchemyReplayJobRepository(self.session)
        self.replay_history = SqlAlchemyReplayJobHistoryRepository(self.session)
        return self

    async def __aexit__(self, *args):
        try:
            await self.rollback()
        finally:
            await self.session.close()
            self.session = None

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        await self.session.rollback()
