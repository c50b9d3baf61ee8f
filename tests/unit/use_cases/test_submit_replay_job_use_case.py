"""Unit tests for SubmitReplayJobUseCase"""
import pytest
from unittest.mock import AsyncMock, MagicMock
from datetime import datetime, timedelta, timezone
from src.app.services.log_client import TransientLogError
from src.app.services.replay_job_validator import ReplayJobValidator
from src.app.use_cases.replay_jobs import SubmitReplayJobCommandDTO, SubmitReplayJobUseCase
from src.domain.enums import ReplayJobStatus, ScheduleType

NOW = datetime(2026, 3, 2, 12, 0, 0)


@pytest.fixture
def mock_uow():
    uow = MagicMock()
    uow.replay_jobs = MagicMock()
    uow.replay_jobs.create = AsyncMock(side_effect=lambda job: job)
    uow.commit = AsyncMock()
    return uow


@pytest.fixture
def mock_log_client():
    client = MagicMock()
    client.topic_exists = AsyncMock(return_value=True)
    return client


@pytest.fixture
def submit_use_case(mock_uow, mock_log_client, scheduler):
    return SubmitReplayJobUseCase(
        mock_uow,
        mock_log_client,
        ReplayJobValidator(scheduler),
        scheduler,
        default_retry_delay_seconds=45,
        clock=lambda: NOW,
    )


def command(**overrides) -> SubmitReplayJobCommandDTO:
    fields = {"cluster_id": "cluster-1", "source_topic": "orders", "target_topic": "orders-replay"}
    fields.update(overrides)
    return SubmitReplayJobCommandDTO(**fields)


@pytest.mark.asyncio
class TestSubmitReplayJobUseCase:

    async def test_submit_success(self, submit_use_case, mock_uow, mock_log_client):
        # Act
        result = await submit_use_case.execute(command(created_by="alice"))

        # Assert
        assert result.is_ok()
        assert result.value.status == ReplayJobStatus.PENDING
        assert result.value.next_scheduled_run is None
        job = mock_uow.replay_jobs.create.call_args[0][0]
        assert job.id == result.value.job_id
        assert job.created_by == "alice"
        assert job.retry_delay_seconds == 45
        assert job.created_at == NOW
        mock_log_client.topic_exists.assert_called_once_with("orders")
        mock_uow.commit.assert_called_once()

    async def test_filters_and_transformation_stored_as_json(self, submit_use_case, mock_uow):
        result = await submit_use_case.execute(command(
            filters={"key_filter": {"type": "PREFIX", "value": "order-"}, "logic": "OR"},
            transformation={"rules": [{"type": "REMOVE_KEY"}]},
        ))

        assert result.is_ok()
        job = mock_uow.replay_jobs.create.call_args[0][0]
        assert job.filters["key_filter"] == {"type": "PREFIX", "value": "order-"}
        assert job.filters["logic"] == "OR"
        assert job.transformation == {"version": 1, "rules": [
            {"type": "REMOVE_KEY", "key": None, "value": None, "pattern": None}
        ]}

    async def test_aware_timestamps_normalized_to_utc(self, submit_use_case, mock_uow):
        start = datetime(2026, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

        await submit_use_case.execute(command(start_timestamp=start))

        job = mock_uow.replay_jobs.create.call_args[0][0]
        assert job.start_timestamp == datetime(2026, 3, 1, 12, 0)

    async def test_invalid_job_rejected_without_storing(self, submit_use_case, mock_uow, mock_log_client):
        result = await submit_use_case.execute(command(consumer_group_id="billing"))

        assert result.is_err()
        assert result.error.code == "VALIDATION_ERROR"
        mock_log_client.topic_exists.assert_not_called()
        mock_uow.replay_jobs.create.assert_not_called()

    async def test_unknown_topic_rejected(self, submit_use_case, mock_uow, mock_log_client):
        mock_log_client.topic_exists = AsyncMock(return_value=False)

        result = await submit_use_case.execute(command())

        assert result.error.code == "TOPIC_NOT_FOUND"
        mock_uow.replay_jobs.create.assert_not_called()

    async def test_unreachable_cluster(self, submit_use_case, mock_log_client):
        mock_log_client.topic_exists = AsyncMock(side_effect=TransientLogError("broker down"))

        result = await submit_use_case.execute(command())

        assert result.error.code == "LOG_UNAVAILABLE"
        assert result.error.reason == "broker down"

    async def test_one_time_schedule_sets_next_run(self, submit_use_case):
        run_at = NOW + timedelta(hours=2)

        result = await submit_use_case.execute(command(schedule_type=ScheduleType.ONE_TIME, scheduled_at=run_at))

        assert result.value.next_scheduled_run == run_at

    async def test_recurring_schedule_sets_first_firing(self, submit_use_case):
        result = await submit_use_case.execute(command(
            schedule_type=ScheduleType.RECURRING, schedule_cron="*/15 * * * *"
        ))

        assert result.value.next_scheduled_run == NOW + timedelta(minutes=15)
