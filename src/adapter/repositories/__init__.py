from src.adapter.repositories.replay_job_repository import SqlAlchemyReplayJobRepository
from src.adapter.repositories.replay_job_history_repository import SqlAlchemyReplayJobHistoryRepository

__all__ = [
    "SqlAlchemyReplayJobRepository",
    "SqlAlchemyReplayJobHistoryRepository",
]
