"""Retry Policy

Decides whether a failed replay job is re-queued and how long it waits.
"""
from datetime import datetime, timedelta
from src.domain.enums import ReplayJobStatus
from src.domain.replay_job import ReplayJob


class RetryPolicy:
    """
    Retry Policy

    Automatic retries consume ``retry_count``; manual retries reset it and
    are never decided here.
    """

    def should_retry(self, job: ReplayJob) -> bool:
        """
        Check whether a job is eligible for an automatic retry.

        Only FAILED jobs are eligible, and only while retry_count < max_retries.
        """
        if job.status != ReplayJobStatus.FAILED:
            return False
        return job.retry_count < job.max_retries

    def retry_delay(self, job: ReplayJob) -> int:
        """Minimum wait in seconds before the job is re-queued"""
        return max(job.retry_delay_seconds, 0)

    def next_retry_at(self, job: ReplayJob, now: datetime) -> datetime:
        return now + timedelta(seconds=self.retry_delay(job))

    def backoff(self, attempt: int, base_delay: float = 1.0) -> float:
        """
        Exponential backoff for transient I/O errors inside one attempt.

        Formula: base_delay * 2 ^ attempt
        Examples: attempt=0 -> 1s, attempt=1 -> 2s, attempt=2 -> 4s (base 1s)
        """
        return base_delay * (2 ** attempt)
