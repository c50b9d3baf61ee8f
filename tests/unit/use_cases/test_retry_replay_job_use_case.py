"""Unit tests for RetryReplayJobUseCase"""
import pytest
from unittest.mock import AsyncMock, MagicMock
from datetime import datetime
from src.app.use_cases.replay_jobs import RetryReplayJobUseCase
from src.domain.enums import HistoryAction, ReplayJobStatus
from src.domain.replay_job import ReplayJob

NOW = datetime(2026, 3, 2, 12, 0, 0)


def failed_job() -> ReplayJob:
    return ReplayJob(
        id="job-1",
        cluster_id="cluster-1",
        source_topic="orders",
        target_topic="orders-replay",
        status=ReplayJobStatus.FAILED,
        retry_count=3,
        max_retries=3,
        error_message="broker down",
    )


@pytest.fixture
def mock_uow():
    uow = MagicMock()
    uow.replay_jobs = MagicMock()
    uow.replay_jobs.acquire_lease = AsyncMock(return_value=True)
    uow.replay_jobs.release_lease = AsyncMock()
    uow.replay_jobs.update = AsyncMock()
    uow.replay_history = MagicMock()
    uow.replay_history.append = AsyncMock()
    uow.commit = AsyncMock()
    return uow


@pytest.fixture
def retry_use_case(mock_uow):
    return RetryReplayJobUseCase(mock_uow, lease_owner="api/control", clock=lambda: NOW)


@pytest.mark.asyncio
class TestRetryReplayJobUseCase:

    async def test_manual_retry_resets_budget(self, retry_use_case, mock_uow):
        # Arrange
        job = failed_job()
        mock_uow.replay_jobs.get_by_id = AsyncMock(return_value=job)

        # Act
        result = await retry_use_case.execute("job-1")

        # Assert
        assert result.is_ok()
        assert result.value.status == ReplayJobStatus.PENDING
        assert result.value.retry_count == 0
        assert result.value.error_message is None
        entry = mock_uow.replay_history.append.call_args[0][0]
        assert entry.action == HistoryAction.ACTION_RETRIED
        assert entry.details == {"manual": True, "previous_retry_count": 3}
        mock_uow.commit.assert_called_once()

    @pytest.mark.parametrize(
        "status", [ReplayJobStatus.PENDING, ReplayJobStatus.RUNNING, ReplayJobStatus.COMPLETED, ReplayJobStatus.CANCELLED]
    )
    async def test_only_failed_jobs_can_be_retried(self, retry_use_case, mock_uow, status):
        job = failed_job()
        job.status = status
        mock_uow.replay_jobs.get_by_id = AsyncMock(return_value=job)

        result = await retry_use_case.execute("job-1")

        assert result.error.code == "INVALID_JOB_STATE"
        mock_uow.commit.assert_not_called()

    async def test_busy_job_rejected(self, retry_use_case, mock_uow):
        mock_uow.replay_jobs.get_by_id = AsyncMock(return_value=failed_job())
        mock_uow.replay_jobs.acquire_lease = AsyncMock(return_value=False)

        result = await retry_use_case.execute("job-1")

        assert result.error.code == "JOB_BUSY"
        mock_uow.replay_jobs.update.assert_not_called()

    async def test_job_not_found(self, retry_use_case, mock_uow):
        mock_uow.replay_jobs.get_by_id = AsyncMock(return_value=None)

        result = await retry_use_case.execute("missing")

        assert result.error.code == "JOB_NOT_FOUND"
