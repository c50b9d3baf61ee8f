"""Shared fixtures for unit tests

In-memory job store with per-transaction staging: changes made through a
unit of work become visible to others only on commit, and only the columns
that changed are written back (as an ORM UPDATE would). Lease and
cancellation updates apply immediately, like a conditional UPDATE.
"""
import copy
import pytest
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from src.adapter.services.in_memory_log_client import InMemoryLogClient
from src.app.repositories.replay_job_repository import IReplayJobRepository, ReplayJobQuery
from src.app.repositories.replay_job_history_repository import IReplayJobHistoryRepository
from src.app.services.scheduler import CronEvaluator, ReplayScheduler, ScheduleError
from src.app.services.unit_of_work import UnitOfWork
from src.domain.enums import ReplayJobStatus, ScheduleType
from src.domain.replay_job import ReplayJob
from src.domain.replay_job_history import ReplayJobHistory


def _clone(job: ReplayJob) -> ReplayJob:
    return ReplayJob(**copy.deepcopy(job.model_dump()))


class FakeJobStore:
    def __init__(self):
        self.jobs: Dict[str, ReplayJob] = {}
        self.history: List[ReplayJobHistory] = []
        self.commits = 0

    def get(self, job_id: str) -> Optional[ReplayJob]:
        """Committed copy of a job"""
        job = self.jobs.get(job_id)
        return _clone(job) if job is not None else None

    def history_for(self, job_id: str) -> List[ReplayJobHistory]:
        return [entry for entry in self.history if entry.replay_job_id == job_id]

    def actions_for(self, job_id: str) -> List[str]:
        return [entry.action for entry in self.history_for(job_id)]


class FakeReplayJobRepository(IReplayJobRepository):

    def __init__(self, uow: "FakeUnitOfWork"):
        self.uow = uow
        self.store = uow.store

    def _track(self, job: ReplayJob) -> ReplayJob:
        loaded = self.uow.loaded.get(job.id)
        if loaded is not None:
            return loaded[0]
        self.uow.loaded[job.id] = (job, copy.deepcopy(job.model_dump()))
        return job

    def _visible(self) -> List[ReplayJob]:
        jobs = []
        for job_id, stored in self.store.jobs.items():
            if job_id in self.uow.deleted:
                continue
            loaded = self.uow.loaded.get(job_id)
            jobs.append(loaded[0] if loaded else _clone(stored))
        jobs.extend(job for job_id, job in self.uow.created.items() if job_id not in self.uow.deleted)
        return jobs

    async def create(self, job: ReplayJob) -> ReplayJob:
        self.uow.created[job.id] = job
        return job

    async def get_by_id(self, job_id: str) -> Optional[ReplayJob]:
        if job_id in self.uow.deleted:
            return None
        if job_id in self.uow.created:
            return self.uow.created[job_id]
        stored = self.store.jobs.get(job_id)
        if stored is None:
            return None
        return self._track(_clone(stored))

    async def update(self, job: ReplayJob) -> ReplayJob:
        if job.id in self.uow.created:
            return job
        if job.id not in self.uow.loaded:
            stored = self.store.jobs.get(job.id)
            baseline = copy.deepcopy(stored.model_dump()) if stored is not None else {}
            self.uow.loaded[job.id] = (job, baseline)
        return job

    async def delete(self, job_id: str) -> None:
        self.uow.deleted.add(job_id)

    async def list(self, query: ReplayJobQuery) -> Tuple[List[ReplayJob], int]:
        jobs = [
            job for job in self._visible()
            if (not query.cluster_id or job.cluster_id == query.cluster_id)
            and (not query.status or job.status == query.status)
            and (not query.source_topic or job.source_topic == query.source_topic)
            and (not query.created_by or job.created_by == query.created_by)
            and (not query.created_after or job.created_at >= query.created_after)
            and (not query.created_before or job.created_at <= query.created_before)
        ]
        jobs.sort(key=lambda job: job.created_at, reverse=True)
        page = jobs[query.offset:query.offset + query.limit]
        return [self._track(job) for job in page], len(jobs)

    async def get_due_jobs(self, now: datetime, limit: int = 100) -> List[ReplayJob]:
        jobs = sorted(
            (job for job in self._visible() if job.is_due(now)), key=lambda job: job.created_at
        )
        return [self._track(job) for job in jobs[:limit]]

    async def get_recurring_jobs_to_rearm(self, now: datetime) -> List[ReplayJob]:
        return [
            self._track(job) for job in self._visible()
            if job.status == ReplayJobStatus.FAILED
            and job.schedule_type == ScheduleType.RECURRING
            and job.next_scheduled_run is not None
            and job.next_scheduled_run <= now
        ]

    async def get_stale_running_jobs(self, now: datetime) -> List[ReplayJob]:
        return [
            self._track(job) for job in self._visible()
            if job.status == ReplayJobStatus.RUNNING
            and (job.lease_expires_at is None or job.lease_expires_at <= now)
        ]

    def _apply_now(self, job_id: str, **values) -> None:
        stored = self.store.jobs[job_id]
        for name, value in values.items():
            setattr(stored, name, value)
        loaded = self.uow.loaded.get(job_id)
        if loaded is not None:
            for name, value in values.items():
                setattr(loaded[0], name, value)
                loaded[1][name] = value

    async def acquire_lease(
        self, job_id: str, owner: str, now: datetime, expires_at: datetime
    ) -> bool:
        stored = self.store.jobs.get(job_id)
        if stored is None:
            return False
        free = (
            stored.lease_owner is None
            or stored.lease_expires_at is None
            or stored.lease_expires_at <= now
            or stored.lease_owner == owner
        )
        if not free:
            return False
        self._apply_now(job_id, lease_owner=owner, lease_expires_at=expires_at)
        return True

    async def release_lease(self, job_id: str, owner: str) -> None:
        stored = self.store.jobs.get(job_id)
        if stored is not None and stored.lease_owner == owner:
            self._apply_now(job_id, lease_owner=None, lease_expires_at=None)

    async def request_cancellation(self, job_id: str) -> bool:
        stored = self.store.jobs.get(job_id)
        if stored is None or stored.status not in (ReplayJobStatus.PENDING, ReplayJobStatus.RUNNING):
            return False
        self._apply_now(job_id, cancel_requested=True)
        return True


class FakeReplayJobHistoryRepository(IReplayJobHistoryRepository):

    def __init__(self, uow: "FakeUnitOfWork"):
        self.uow = uow
        self.store = uow.store

    def _visible(self) -> List[ReplayJobHistory]:
        return [
            entry for entry in self.store.history + self.uow.new_history
            if entry.replay_job_id not in self.uow.deleted_history_jobs
            and (self.uow.purge_cutoff is None or entry.timestamp >= self.uow.purge_cutoff)
        ]

    async def append(self, entry: ReplayJobHistory) -> ReplayJobHistory:
        self.uow.new_history.append(entry)
        return entry

    async def list_by_job(
        self, job_id: str, limit: int = 100, offset: int = 0
    ) -> Tuple[List[ReplayJobHistory], int]:
        entries = sorted(
            (entry for entry in self._visible() if entry.replay_job_id == job_id),
            key=lambda entry: entry.timestamp,
        )
        return entries[offset:offset + limit], len(entries)

    async def delete_by_job(self, job_id: str) -> int:
        count = sum(1 for entry in self._visible() if entry.replay_job_id == job_id)
        self.uow.deleted_history_jobs.add(job_id)
        return count

    async def purge_before(self, cutoff: datetime) -> int:
        count = sum(1 for entry in self._visible() if entry.timestamp < cutoff)
        self.uow.purge_cutoff = cutoff
        return count


class FakeUnitOfWork(UnitOfWork):

    def __init__(self, store: FakeJobStore):
        self.store = store

    async def __aenter__(self):
        self._reset()
        self.replay_jobs = FakeReplayJobRepository(self)
        self.replay_history = FakeReplayJobHistoryRepository(self)
        return self

    async def __aexit__(self, *args):
        await self.rollback()

    def _reset(self):
        self.created: Dict[str, ReplayJob] = {}
        self.loaded: Dict[str, Tuple[ReplayJob, dict]] = {}
        self.deleted = set()
        self.new_history: List[ReplayJobHistory] = []
        self.deleted_history_jobs = set()
        self.purge_cutoff: Optional[datetime] = None

    async def commit(self):
        for job_id, job in self.created.items():
            self.store.jobs[job_id] = _clone(job)
        for job_id, (job, baseline) in self.loaded.items():
            stored = self.store.jobs.get(job_id)
            if stored is None:
                continue
            current = job.model_dump()
            for name, value in current.items():
                if baseline.get(name) != value:
                    setattr(stored, name, copy.deepcopy(value))
            self.loaded[job_id] = (job, copy.deepcopy(current))
        if self.deleted_history_jobs:
            self.store.history = [
                entry for entry in self.store.history
                if entry.replay_job_id not in self.deleted_history_jobs
            ]
        if self.purge_cutoff is not None:
            self.store.history = [
                entry for entry in self.store.history if entry.timestamp >= self.purge_cutoff
            ]
        self.store.history.extend(self.new_history)
        for job_id in self.deleted:
            self.store.jobs.pop(job_id, None)
        self.store.commits += 1
        self.created = {}
        self.deleted = set()
        self.new_history = []
        self.deleted_history_jobs = set()
        self.purge_cutoff = None

    async def rollback(self):
        self._reset()


class FakeClock:
    """Mutable naive-UTC clock"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class FakeCronEvaluator(CronEvaluator):
    """Understands '@every <n>m' and '*/<n> * * * *' (every n minutes)"""

    def _minutes(self, expression: str) -> int:
        if expression.startswith("@every ") and expression.endswith("m"):
            return int(expression[len("@every "):-1])
        fields = expression.split()
        if len(fields) == 5 and fields[0].startswith("*/") and fields[1:] == ["*"] * 4:
            return int(fields[0][2:])
        raise ScheduleError(f"Unsupported cron expression '{expression}'")

    def next_after(self, expression: str, timezone: str, after: datetime) -> datetime:
        step = self._minutes(expression)
        base = after.replace(second=0, microsecond=0)
        minutes = base.minute - base.minute % step + step
        return base.replace(minute=0) + timedelta(minutes=minutes)

    def validate(self, expression: str, timezone: str) -> None:
        self._minutes(expression)


NOW = datetime(2026, 3, 2, 12, 0, 0)


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def store():
    return FakeJobStore()


@pytest.fixture
def uow_factory(store):
    return lambda: FakeUnitOfWork(store)


@pytest.fixture
def log_client():
    return InMemoryLogClient()


@pytest.fixture
def scheduler():
    return ReplayScheduler(FakeCronEvaluator())


@pytest.fixture
def make_job(store, clock):
    """Create and commit a job directly in the store"""

    def _make_job(**overrides) -> ReplayJob:
        fields = {
            "cluster_id": "cluster-1",
            "source_topic": "orders",
            "target_topic": "orders-replay",
            "start_offset": 0,
            "created_at": clock(),
            "updated_at": clock(),
        }
        fields.update(overrides)
        job = ReplayJob(**fields)
        store.jobs[job.id] = _clone(job)
        return store.get(job.id)

    return _make_job
