"""Cron evaluator backed by croniter and zoneinfo"""
from datetime import datetime, timezone as dt_timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from croniter import croniter
from src.app.services.scheduler import CronEvaluator, ScheduleError


class CroniterCronEvaluator(CronEvaluator):
    """Evaluates 5-field UNIX cron expressions in an IANA timezone"""

    def next_after(self, expression: str, timezone: str, after: datetime) -> datetime:
        zone = self._zone(timezone)
        local_after = after.replace(tzinfo=dt_timezone.utc).astimezone(zone)
        local_next = croniter(expression, local_after).get_next(datetime)
        return local_next.astimezone(dt_timezone.utc).replace(tzinfo=None)

    def validate(self, expression: str, timezone: str) -> None:
        if len(expression.split()) != 5:
            raise ScheduleError(
                f"Cron expression must have 5 fields (minute hour day month weekday): '{expression}'"
            )
        if not croniter.is_valid(expression):
            raise ScheduleError(f"Invalid cron expression: '{expression}'")
        self._zone(timezone)

    @staticmethod
    def _zone(name: str) -> ZoneInfo:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ScheduleError(f"Unknown timezone: '{name}'") from e
