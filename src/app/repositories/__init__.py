from src.app.repositories.replay_job_repository import IReplayJobRepository, ReplayJobQuery
from src.app.repositories.replay_job_history_repository import IReplayJobHistoryRepository

__all__ = [
    "IReplayJobRepository",
    "ReplayJobQuery",
    "IReplayJobHistoryRepository",
]
