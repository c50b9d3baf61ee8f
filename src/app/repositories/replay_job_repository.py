"""Replay Job Repository Interface

Persistence of ReplayJob records, including the conditional updates that
implement the per-job execution lease.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple
from src.domain.replay_job import ReplayJob
from src.domain.enums import ReplayJobStatus


@dataclass
class ReplayJobQuery:
    """Filters for listing replay jobs; None means unfiltered"""
    cluster_id: Optional[str] = None
    status: Optional[ReplayJobStatus] = None
    source_topic: Optional[str] = None
    created_by: Optional[str] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    limit: int = 50
    offset: int = 0


class IReplayJobRepository(ABC):
    """Interface for ReplayJob repository"""

    @abstractmethod
    async def create(self, job: ReplayJob) -> ReplayJob:
        pass

    @abstractmethod
    async def get_by_id(self, job_id: str) -> Optional[ReplayJob]:
        pass

    @abstractmethod
    async def update(self, job: ReplayJob) -> ReplayJob:
        pass

    @abstractmethod
    async def delete(self, job_id: str) -> None:
        pass

    @abstractmethod
    async def list(self, query: ReplayJobQuery) -> Tuple[List[ReplayJob], int]:
        """
        List jobs matching the query, newest first.

        Returns:
            Tuple[List[ReplayJob], int]: One page of jobs and the total match count
        """
        pass

    @abstractmethod
    async def get_due_jobs(self, now: datetime, limit: int = 100) -> List[ReplayJob]:
        """
        PENDING jobs whose next_retry_at and next_scheduled_run are unset or
        not after ``now``, oldest first.
        """
        pass

    @abstractmethod
    async def get_recurring_jobs_to_rearm(self, now: datetime) -> List[ReplayJob]:
        """FAILED recurring jobs whose next_scheduled_run has passed"""
        pass

    @abstractmethod
    async def get_stale_running_jobs(self, now: datetime) -> List[ReplayJob]:
        """RUNNING jobs whose execution lease expired or was never taken"""
        pass

    @abstractmethod
    async def acquire_lease(
        self, job_id: str, owner: str, now: datetime, expires_at: datetime
    ) -> bool:
        """
        Claim (or renew) the lease on a job.

        Succeeds when the job is unleased, its lease expired, or ``owner``
        already holds it.

        Returns:
            bool: True if ``owner`` holds the lease afterwards
        """
        pass

    @abstractmethod
    async def release_lease(self, job_id: str, owner: str) -> None:
        """Drop the lease if ``owner`` still holds it"""
        pass

    @abstractmethod
    async def request_cancellation(self, job_id: str) -> bool:
        """
        Flag a PENDING or RUNNING job for cooperative cancellation.

        Returns:
            bool: True if the flag was set
        """
        pass
