"""Progress Tracker

Accumulates counters for one execution attempt and produces
ReplayJobProgress snapshots with a trailing-window throughput.
"""
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional, Tuple
from src.domain.replay_job_progress import PartitionProgress, ReplayJobProgress


class ProgressTracker:

    def __init__(
        self,
        window_seconds: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.clock = clock
        self.started = clock()
        self.messages_processed = 0
        self.messages_total: Optional[int] = None
        self.messages_matched = 0
        self.messages_produced = 0
        self.messages_failed = 0
        self._samples: Deque[Tuple[float, int]] = deque()
        self._partitions: Dict[int, PartitionProgress] = {}
        self._range_sizes: Dict[int, int] = {}

    def set_partition_range(self, partition: int, start: int, end: int) -> None:
        self._partitions[partition] = PartitionProgress(position=start, end_offset=end)
        self._range_sizes[partition] = max(end - start, 0)
        self.messages_total = sum(self._range_sizes.values())

    def record_batch(
        self,
        partition: int,
        processed: int,
        matched: int = 0,
        produced: int = 0,
        failed: int = 0,
        position: Optional[int] = None,
    ) -> None:
        self.messages_processed += processed
        self.messages_matched += matched
        self.messages_produced += produced
        self.messages_failed += failed
        self._samples.append((self.clock(), processed))
        if position is not None and partition in self._partitions:
            current = self._partitions[partition]
            self._partitions[partition] = PartitionProgress(
                position=position, end_offset=current.end_offset
            )

    def throughput(self) -> float:
        """Messages per second over the trailing window"""
        now = self.clock()
        cutoff = now - self.window_seconds
        while self._samples and self._samples[0][0] < cutoff:
            self._samples.popleft()
        if not self._samples:
            return 0.0
        # A young attempt has not filled the window yet
        span = min(self.window_seconds, now - self.started)
        if span <= 0:
            return 0.0
        return sum(count for _, count in self._samples) / span

    def snapshot(self) -> ReplayJobProgress:
        throughput = self.throughput()
        remaining = None
        if self.messages_total is not None and throughput > 0:
            remaining = max(self.messages_total - self.messages_processed, 0) / throughput
        return ReplayJobProgress(
            messages_processed=self.messages_processed,
            messages_total=self.messages_total,
            messages_matched=self.messages_matched,
            messages_produced=self.messages_produced,
            messages_failed=self.messages_failed,
            throughput=round(throughput, 3),
            estimated_seconds_remaining=round(remaining, 3) if remaining is not None else None,
            partitions={str(p): progress for p, progress in sorted(self._partitions.items())},
        )
