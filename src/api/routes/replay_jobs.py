"""Replay Jobs API Routes

HTTP control surface over the replay job supervisor: submission, queries,
cancellation, manual retry and deletion.
"""
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Header, Query, Response, status
from libs.result import Error
from src.api.error import ClientError, ServerError
from src.api.schemas.replay_job_request import SubmitReplayJobRequest
from src.app.services.replay_job_supervisor import ReplayJobSupervisor
from src.app.use_cases.replay_jobs import (
    ListReplayJobsQueryDTO,
    ReplayJobDTO,
    ReplayJobHistoryPageDTO,
    ReplayJobListDTO,
    SubmitReplayJobCommandDTO,
    SubmitReplayJobResponseDTO,
)
from src.depends import get_supervisor
from src.domain.enums import ReplayJobStatus
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/replay-jobs", tags=["Replay Jobs"])

STATUS_BY_ERROR_CODE = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "TOPIC_NOT_FOUND": status.HTTP_400_BAD_REQUEST,
    "JOB_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_JOB_STATE": status.HTTP_409_CONFLICT,
    "JOB_BUSY": status.HTTP_409_CONFLICT,
    "LOG_UNAVAILABLE": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _api_error(error: Error) -> Exception:
    status_code = STATUS_BY_ERROR_CODE.get(error.code)
    if status_code is None:
        return ServerError(error)
    return ClientError(error, status_code=status_code)


@router.post(
    "",
    response_model=SubmitReplayJobResponseDTO,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a replay job",
)
async def submit_replay_job(
    request: SubmitReplayJobRequest,
    x_user_id: Optional[str] = Header(None, description="Submitting user, recorded as created_by"),
    supervisor: ReplayJobSupervisor = Depends(get_supervisor),
):
    """
    Validate and persist a replay job.

    Returns:
        - 202: job id and initial status (PENDING)
        - 400: validation failure or unknown source topic
        - 503: log cluster unreachable
    """
    command = SubmitReplayJobCommandDTO(**request.model_dump(), created_by=x_user_id)
    result = await supervisor.submit(command)

    if result.is_err():
        raise _api_error(result.error)

    logger.info(f"Replay job {result.value.job_id} submitted by {x_user_id or 'anonymous'}")
    return result.value


@router.get("", response_model=ReplayJobListDTO, status_code=status.HTTP_200_OK)
async def list_replay_jobs(
    cluster_id: Optional[str] = Query(None),
    status_filter: Optional[ReplayJobStatus] = Query(None, alias="status"),
    source_topic: Optional[str] = Query(None),
    created_by: Optional[str] = Query(None),
    created_after: Optional[datetime] = Query(None),
    created_before: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=500, description="Number of items per page"),
    offset: int = Query(0, ge=0, description="Number of items to skip"),
    supervisor: ReplayJobSupervisor = Depends(get_supervisor),
):
    """List replay jobs, newest first"""
    query = ListReplayJobsQueryDTO(
        cluster_id=cluster_id,
        status=status_filter,
        source_topic=source_topic,
        created_by=created_by,
        created_after=created_after,
        created_before=created_before,
        limit=limit,
        offset=offset,
    )
    result = await supervisor.list_jobs(query)

    if result.is_err():
        raise _api_error(result.error)

    return result.value


@router.get("/{job_id}", response_model=ReplayJobDTO, status_code=status.HTTP_200_OK)
async def get_replay_job(
    job_id: str,
    supervisor: ReplayJobSupervisor = Depends(get_supervisor),
):
    result = await supervisor.get_job(job_id)

    if result.is_err():
        raise _api_error(result.error)

    return result.value


@router.get(
    "/{job_id}/history", response_model=ReplayJobHistoryPageDTO, status_code=status.HTTP_200_OK
)
async def get_replay_job_history(
    job_id: str,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    supervisor: ReplayJobSupervisor = Depends(get_supervisor),
):
    """History entries of a job, oldest first"""
    result = await supervisor.get_history(job_id, limit=limit, offset=offset)

    if result.is_err():
        raise _api_error(result.error)

    return result.value


@router.post("/{job_id}/cancel", response_model=ReplayJobDTO, status_code=status.HTTP_200_OK)
async def cancel_replay_job(
    job_id: str,
    supervisor: ReplayJobSupervisor = Depends(get_supervisor),
):
    """
    Cancel a replay job.

    Returns:
        - 200: the job (CANCELLED, or flagged for cancellation while running)
        - 404: job not found
        - 409: job already terminal
    """
    result = await supervisor.cancel(job_id)

    if result.is_err():
        raise _api_error(result.error)

    return result.value


@router.post("/{job_id}/retry", response_model=ReplayJobDTO, status_code=status.HTTP_200_OK)
async def retry_replay_job(
    job_id: str,
    supervisor: ReplayJobSupervisor = Depends(get_supervisor),
):
    """Manually retry a FAILED job"""
    result = await supervisor.retry(job_id)

    if result.is_err():
        raise _api_error(result.error)

    return result.value


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_replay_job(
    job_id: str,
    supervisor: ReplayJobSupervisor = Depends(get_supervisor),
):
    """Delete a terminal job together with its history"""
    result = await supervisor.delete(job_id)

    if result.is_err():
        raise _api_error(result.error)

    return Response(status_code=status.HTTP_204_NO_CONTENT)
