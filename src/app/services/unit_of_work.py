from abc import ABC, abstractmethod
from src.app.repositories.replay_job_repository import IReplayJobRepository
from src.app.repositories.replay_job_history_repository import IReplayJobHistoryRepository


class UnitOfWork(ABC):
    """
    Transaction boundary over the replay repositories.

    Leaving the context without calling commit() rolls back.
    """
    replay_jobs: IReplayJobRepository
    replay_history: IReplayJobHistoryRepository

    @abstractmethod
    async def __aenter__(self):
        pass

    @abstractmethod
    async def __aexit__(self, *args):
        pass

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass
