import re
from datetime import datetime
from typing import List
from libs.result import Result, Error, Return
from src.app.services.scheduler import ReplayScheduler, Schedule, ScheduleError
from src.domain.enums import TransformRuleType, ValueFilterType
from src.domain.message_transformation import SUPPORTED_TRANSFORMATION_VERSIONS
from src.domain.replay_job import ReplayJob


class ReplayJobValidator:
    """Service for validating replay job specifications before they are accepted"""

    def __init__(self, scheduler: ReplayScheduler):
        self.scheduler = scheduler

    def validate(self, job: ReplayJob, now: datetime) -> Result[bool]:
        """
        Validate a replay job specification

        Args:
            job: Unsaved job built from the submission
            now: Current naive UTC time, for schedule checks

        Returns:
            Result[bool]: Success if valid, VALIDATION_ERROR listing every problem otherwise
        """
        errors: List[str] = []

        if not job.cluster_id or not job.cluster_id.strip():
            errors.append("cluster_id is required")
        if not job.source_topic or not job.source_topic.strip():
            errors.append("source_topic is required")

        # Destination: exactly one of target_topic / consumer_group_id
        if job.target_topic and job.consumer_group_id:
            errors.append("target_topic and consumer_group_id are mutually exclusive")
        elif not job.target_topic and not job.consumer_group_id:
            errors.append("Either target_topic or consumer_group_id is required")

        # Range bounds
        if job.start_offset is not None and job.start_timestamp is not None:
            errors.append("start_offset and start_timestamp are mutually exclusive")
        if job.end_offset is not None and job.end_timestamp is not None:
            errors.append("end_offset and end_timestamp are mutually exclusive")
        if job.start_offset is not None and job.start_offset < 0:
            errors.append("start_offset must be >= 0")
        if job.end_offset is not None and job.end_offset < 0:
            errors.append("end_offset must be >= 0")
        if (
            job.start_offset is not None
            and job.end_offset is not None
            and job.start_offset > job.end_offset
        ):
            errors.append("start_offset must not be greater than end_offset")
        if (
            job.start_timestamp is not None
            and job.end_timestamp is not None
            and job.start_timestamp > job.end_timestamp
        ):
            errors.append("start_timestamp must not be after end_timestamp")

        if job.partitions is not None:
            if not job.partitions:
                errors.append("partitions must not be empty when provided")
            elif any(p < 0 for p in job.partitions):
                errors.append("partitions must be >= 0")
            elif len(set(job.partitions)) != len(job.partitions):
                errors.append("partitions must not contain duplicates")

        if job.max_retries < 0:
            errors.append("max_retries must be >= 0")
        if job.retry_delay_seconds < 0:
            errors.append("retry_delay_seconds must be >= 0")

        try:
            self.scheduler.validate(Schedule.from_job(job), now)
        except ScheduleError as e:
            errors.append(str(e))

        errors.extend(self._filter_errors(job))
        errors.extend(self._transformation_errors(job))

        if errors:
            return Return.err(
                Error(
                    code="VALIDATION_ERROR",
                    message="Replay job validation failed",
                    reason="; ".join(errors),
                )
            )

        return Return.ok(True)

    @staticmethod
    def _filter_errors(job: ReplayJob) -> List[str]:
        message_filter = job.parsed_filter()
        if message_filter is None or message_filter.value_filter is None:
            return []

        value_filter = message_filter.value_filter
        if value_filter.type == ValueFilterType.SIZE:
            if value_filter.min_size is None and value_filter.max_size is None:
                return ["SIZE value filter requires min_size or max_size"]
            if (
                value_filter.min_size is not None
                and value_filter.max_size is not None
                and value_filter.min_size > value_filter.max_size
            ):
                return ["SIZE value filter min_size must not exceed max_size"]
        elif not value_filter.value:
            return [f"{value_filter.type.value} value filter requires a value"]
        return []

    @staticmethod
    def _transformation_errors(job: ReplayJob) -> List[str]:
        transformation = job.parsed_transformation()
        if transformation is None:
            return []

        errors: List[str] = []
        if transformation.version not in SUPPORTED_TRANSFORMATION_VERSIONS:
            errors.append(f"Unsupported transformation version: {transformation.version}")

        for index, rule in enumerate(transformation.rules):
            if rule.type in (TransformRuleType.SET_HEADER, TransformRuleType.REMOVE_HEADER):
                if not rule.key:
                    errors.append(f"Rule {index} ({rule.type.value}) requires a header key")
            elif rule.type == TransformRuleType.REPLACE_VALUE:
                if not rule.pattern:
                    errors.append(f"Rule {index} (REPLACE_VALUE) requires a pattern")
                else:
                    try:
                        re.compile(rule.pattern)
                    except re.error as e:
                        errors.append(f"Rule {index} (REPLACE_VALUE) has an invalid pattern: {e}")
        return errors
