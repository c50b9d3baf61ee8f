"""Replay Scheduler

Computes the next execution instant of scheduled and recurring replay jobs.
All datetimes are naive UTC; cron expressions are evaluated in the job's
stored timezone by an injected CronEvaluator.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from src.domain.enums import ScheduleType
from src.domain.replay_job import ReplayJob


class ScheduleError(ValueError):
    """Raised for malformed cron expressions or unknown timezones"""


class CronEvaluator(ABC):
    """Cron arithmetic, kept behind an interface so the scheduler stays pure"""

    @abstractmethod
    def next_after(self, expression: str, timezone: str, after: datetime) -> datetime:
        """
        Next firing strictly after ``after``.

        Args:
            expression: 5-field UNIX cron expression
            timezone: IANA timezone name the expression is written in
            after: Naive UTC instant

        Returns:
            datetime: Naive UTC instant of the next firing
        """
        pass

    @abstractmethod
    def validate(self, expression: str, timezone: str) -> None:
        """
        Raises:
            ScheduleError: If the expression or timezone is not usable
        """
        pass


@dataclass(frozen=True)
class Schedule:
    type: ScheduleType = ScheduleType.NONE
    run_at: Optional[datetime] = None
    cron: Optional[str] = None
    timezone: str = "UTC"

    @classmethod
    def from_job(cls, job: ReplayJob) -> "Schedule":
        return cls(
            type=ScheduleType(job.schedule_type),
            run_at=job.scheduled_at,
            cron=job.schedule_cron,
            timezone=job.schedule_timezone or "UTC",
        )


class ReplayScheduler:

    def __init__(self, cron_evaluator: CronEvaluator):
        self.cron_evaluator = cron_evaluator

    def next_run(
        self, schedule: Schedule, last_run: Optional[datetime], now: datetime
    ) -> Optional[datetime]:
        """
        Next execution instant, or None when the job has no further run.

        - NONE: None (runs once, immediately)
        - ONE_TIME: run_at until it has fired, then None
        - RECURRING: next cron firing after last_run (or now); firings
          missed while the job was not running are coalesced into one
        """
        if schedule.type == ScheduleType.NONE:
            return None

        if schedule.type == ScheduleType.ONE_TIME:
            if last_run is not None:
                return None
            return schedule.run_at

        if schedule.type == ScheduleType.RECURRING:
            if not schedule.cron:
                raise ScheduleError("Recurring schedule requires a cron expression")
            base = last_run or now
            next_fire = self.cron_evaluator.next_after(schedule.cron, schedule.timezone, base)
            if next_fire <= now:
                next_fire = self.cron_evaluator.next_after(schedule.cron, schedule.timezone, now)
            return next_fire

        raise ScheduleError(f"Unsupported schedule type: {schedule.type}")

    def validate(self, schedule: Schedule, now: datetime) -> None:
        """
        Raises:
            ScheduleError: If the schedule can never fire as configured
        """
        if schedule.type == ScheduleType.ONE_TIME:
            if schedule.run_at is None:
                raise ScheduleError("One-time schedule requires scheduled_at")
            if schedule.run_at <= now:
                raise ScheduleError("scheduled_at must be in the future")
        elif schedule.type == ScheduleType.RECURRING:
            if not schedule.cron:
                raise ScheduleError("Recurring schedule requires a cron expression")
            self.cron_evaluator.validate(schedule.cron, schedule.timezone)
