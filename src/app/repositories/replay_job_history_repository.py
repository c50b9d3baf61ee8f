"""Replay Job History Repository Interface

Append-only storage for replay job lifecycle events.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Tuple
from src.domain.replay_job_history import ReplayJobHistory


class IReplayJobHistoryRepository(ABC):
    """Interface for ReplayJobHistory repository"""

    @abstractmethod
    async def append(self, entry: ReplayJobHistory) -> ReplayJobHistory:
        pass

    @abstractmethod
    async def list_by_job(
        self, job_id: str, limit: int = 100, offset: int = 0
    ) -> Tuple[List[ReplayJobHistory], int]:
        """
        History of one job, oldest first.

        Returns:
            Tuple[List[ReplayJobHistory], int]: One page of entries and the total count
        """
        pass

    @abstractmethod
    async def delete_by_job(self, job_id: str) -> int:
        pass

    @abstractmethod
    async def purge_before(self, cutoff: datetime) -> int:
        """Delete entries older than ``cutoff`` (retention sweep)"""
        pass
