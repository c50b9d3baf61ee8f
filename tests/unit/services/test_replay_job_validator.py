"""Unit tests for ReplayJobValidator"""
import pytest
from datetime import datetime, timedelta
from src.app.services.replay_job_validator import ReplayJobValidator
from src.domain.enums import ScheduleType
from src.domain.replay_job import ReplayJob

NOW = datetime(2026, 3, 2, 12, 0, 0)


@pytest.fixture
def validator(scheduler):
    return ReplayJobValidator(scheduler)


def job(**overrides) -> ReplayJob:
    fields = {"cluster_id": "cluster-1", "source_topic": "orders", "target_topic": "orders-replay"}
    fields.update(overrides)
    return ReplayJob(**fields)


def test_minimal_job_is_valid(validator):
    assert validator.validate(job(), NOW).is_ok()


def test_consumer_group_destination_is_valid(validator):
    assert validator.validate(job(target_topic=None, consumer_group_id="billing"), NOW).is_ok()


def test_both_destinations_rejected(validator):
    result = validator.validate(job(consumer_group_id="billing"), NOW)

    assert result.is_err()
    assert result.error.code == "VALIDATION_ERROR"
    assert "mutually exclusive" in result.error.reason


def test_missing_destination_rejected(validator):
    result = validator.validate(job(target_topic=None), NOW)
    assert result.is_err()
    assert "target_topic or consumer_group_id" in result.error.reason


def test_offset_and_timestamp_bounds_are_exclusive(validator):
    result = validator.validate(job(start_offset=1, start_timestamp=NOW, end_offset=5, end_timestamp=NOW), NOW)

    assert result.is_err()
    assert "start_offset and start_timestamp" in result.error.reason
    assert "end_offset and end_timestamp" in result.error.reason


def test_inverted_ranges_rejected(validator):
    assert validator.validate(job(start_offset=10, end_offset=5), NOW).is_err()
    assert validator.validate(
        job(start_timestamp=NOW, end_timestamp=NOW - timedelta(minutes=1)), NOW
    ).is_err()


def test_negative_values_rejected(validator):
    result = validator.validate(job(start_offset=-1, max_retries=-1, retry_delay_seconds=-5), NOW)
    reason = result.error.reason
    assert "start_offset must be >= 0" in reason
    assert "max_retries must be >= 0" in reason
    assert "retry_delay_seconds must be >= 0" in reason


@pytest.mark.parametrize("partitions", [[], [-1], [0, 0]])
def test_bad_partition_lists_rejected(validator, partitions):
    assert validator.validate(job(partitions=partitions), NOW).is_err()


def test_size_filter_needs_a_bound(validator):
    result = validator.validate(job(filters={"value_filter": {"type": "SIZE"}}), NOW)
    assert result.is_err()
    assert "min_size or max_size" in result.error.reason


def test_size_filter_min_above_max(validator):
    filters = {"value_filter": {"type": "SIZE", "min_size": 10, "max_size": 5}}
    assert validator.validate(job(filters=filters), NOW).is_err()


def test_value_filter_requires_value(validator):
    result = validator.validate(job(filters={"value_filter": {"type": "REGEX"}}), NOW)
    assert result.is_err()
    assert "REGEX value filter requires a value" in result.error.reason


def test_transformation_rules_checked(validator):
    transformation = {
        "version": 1,
        "rules": [
            {"type": "SET_HEADER", "value": "x"},
            {"type": "REPLACE_VALUE", "pattern": "(", "value": "y"},
        ],
    }
    result = validator.validate(job(transformation=transformation), NOW)

    assert result.is_err()
    assert "Rule 0 (SET_HEADER) requires a header key" in result.error.reason
    assert "Rule 1 (REPLACE_VALUE) has an invalid pattern" in result.error.reason


def test_unsupported_transformation_version(validator):
    result = validator.validate(job(transformation={"version": 9, "rules": []}), NOW)
    assert result.is_err()


def test_schedule_errors_reported(validator):
    past = job(schedule_type=ScheduleType.ONE_TIME, scheduled_at=NOW - timedelta(hours=1))
    no_cron = job(schedule_type=ScheduleType.RECURRING)

    assert "scheduled_at must be in the future" in validator.validate(past, NOW).error.reason
    assert validator.validate(no_cron, NOW).is_err()


def test_all_problems_reported_together(validator):
    result = validator.validate(job(cluster_id="", source_topic="", target_topic=None), NOW)
    assert len(result.error.reason.split("; ")) == 3
