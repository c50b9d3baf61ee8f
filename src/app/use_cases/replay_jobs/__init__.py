from .dtos import (
    SubmitReplayJobCommandDTO,
    SubmitReplayJobResponseDTO,
    ReplayJobDTO,
    ListReplayJobsQueryDTO,
    ReplayJobListDTO,
    ReplayJobHistoryEntryDTO,
    ReplayJobHistoryPageDTO,
)
from .submit_replay_job_use_case import SubmitReplayJobUseCase
from .cancel_replay_job_use_case import CancelReplayJobUseCase
from .retry_replay_job_use_case import RetryReplayJobUseCase
from .delete_replay_job_use_case import DeleteReplayJobUseCase
from .get_replay_job_use_case import GetReplayJobUseCase
from .list_replay_jobs_use_case import ListReplayJobsUseCase
from .get_replay_job_history_use_case import GetReplayJobHistoryUseCase

__all__ = [
    "SubmitReplayJobCommandDTO",
    "SubmitReplayJobResponseDTO",
    "ReplayJobDTO",
    "ListReplayJobsQueryDTO",
    "ReplayJobListDTO",
    "ReplayJobHistoryEntryDTO",
    "ReplayJobHistoryPageDTO",
    "SubmitReplayJobUseCase",
    "CancelReplayJobUseCase",
    "RetryReplayJobUseCase",
    "DeleteReplayJobUseCase",
    "GetReplayJobUseCase",
    "ListReplayJobsUseCase",
    "GetReplayJobHistoryUseCase",
]
