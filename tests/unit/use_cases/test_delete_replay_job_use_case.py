"""Unit tests for DeleteReplayJobUseCase"""
import pytest
from unittest.mock import AsyncMock, MagicMock
from datetime import datetime
from src.app.use_cases.replay_jobs import DeleteReplayJobUseCase
from src.domain.enums import ReplayJobStatus
from src.domain.replay_job import ReplayJob

NOW = datetime(2026, 3, 2, 12, 0, 0)


def replay_job(status) -> ReplayJob:
    return ReplayJob(id="job-1", cluster_id="cluster-1", source_topic="orders", target_topic="t", status=status)


@pytest.fixture
def mock_uow():
    uow = MagicMock()
    uow.replay_jobs = MagicMock()
    uow.replay_jobs.acquire_lease = AsyncMock(return_value=True)
    uow.replay_jobs.delete = AsyncMock()
    uow.replay_history = MagicMock()
    uow.replay_history.delete_by_job = AsyncMock(return_value=4)
    uow.commit = AsyncMock()
    return uow


@pytest.fixture
def delete_use_case(mock_uow):
    return DeleteReplayJobUseCase(mock_uow, lease_owner="api/control", clock=lambda: NOW)


@pytest.mark.asyncio
class TestDeleteReplayJobUseCase:

    async def test_delete_terminal_job_with_history(self, delete_use_case, mock_uow):
        mock_uow.replay_jobs.get_by_id = AsyncMock(return_value=replay_job(ReplayJobStatus.COMPLETED))

        result = await delete_use_case.execute("job-1")

        assert result.is_ok()
        mock_uow.replay_history.delete_by_job.assert_called_once_with("job-1")
        mock_uow.replay_jobs.delete.assert_called_once_with("job-1")
        mock_uow.commit.assert_called_once()

    @pytest.mark.parametrize("status", [ReplayJobStatus.PENDING, ReplayJobStatus.RUNNING])
    async def test_active_job_rejected(self, delete_use_case, mock_uow, status):
        mock_uow.replay_jobs.get_by_id = AsyncMock(return_value=replay_job(status))

        result = await delete_use_case.execute("job-1")

        assert result.error.code == "INVALID_JOB_STATE"
        mock_uow.replay_jobs.delete.assert_not_called()

    async def test_leased_job_rejected(self, delete_use_case, mock_uow):
        mock_uow.replay_jobs.get_by_id = AsyncMock(return_value=replay_job(ReplayJobStatus.FAILED))
        mock_uow.replay_jobs.acquire_lease = AsyncMock(return_value=False)

        result = await delete_use_case.execute("job-1")

        assert result.error.code == "JOB_BUSY"
        mock_uow.replay_history.delete_by_job.assert_not_called()

    async def test_job_not_found(self, delete_use_case, mock_uow):
        mock_uow.replay_jobs.get_by_id = AsyncMock(return_value=None)

        result = await delete_use_case.execute("missing")

        assert result.error.code == "JOB_NOT_FOUND"
