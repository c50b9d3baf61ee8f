from functools import partial
from typing import Callable, Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession
from config import ApplicationConfig
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.adapter.services.aiokafka_log_client import AIOKafkaLogClient
from src.adapter.services.in_memory_log_client import InMemoryLogClient
from src.adapter.services.croniter_cron_evaluator import CroniterCronEvaluator
from src.app.services.log_client import LogClient
from src.app.services.replay_job_runner import ReplayJobRunner
from src.app.services.replay_job_supervisor import ReplayJobSupervisor
from src.app.services.scheduler import ReplayScheduler
from src.app.services.unit_of_work import UnitOfWork

# PostgreSQL engine
engine = create_async_engine(ApplicationConfig.DB_URI, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)

_log_client: Optional[LogClient] = None
_supervisor: Optional[ReplayJobSupervisor] = None


def build_log_client(config=ApplicationConfig) -> LogClient:
    if config.USE_IN_MEMORY_LOG_CLIENT:
        return InMemoryLogClient()
    return AIOKafkaLogClient(
        bootstrap_servers=config.KAFKA_BOOTSTRAP_SERVERS,
        client_id=config.KAFKA_CLIENT_ID,
    )


def build_supervisor(
    uow_factory: Callable[[], UnitOfWork],
    log_client: LogClient,
    config=ApplicationConfig,
) -> ReplayJobSupervisor:
    """Wire runner, scheduler and supervisor from configuration"""
    runner = ReplayJobRunner(
        uow_factory,
        log_client,
        batch_size=config.REPLAY_BATCH_SIZE,
        partition_concurrency=config.REPLAY_PARTITION_CONCURRENCY,
        progress_window_seconds=config.REPLAY_PROGRESS_WINDOW_SECONDS,
        lease_ttl_seconds=config.REPLAY_LEASE_TTL_SECONDS,
        transient_retry_attempts=config.REPLAY_TRANSIENT_RETRY_ATTEMPTS,
        transient_retry_base_delay=config.REPLAY_TRANSIENT_RETRY_BASE_DELAY,
        empty_poll_backoff_seconds=config.REPLAY_EMPTY_POLL_BACKOFF_SECONDS,
        max_empty_polls=config.REPLAY_MAX_EMPTY_POLLS,
    )
    return ReplayJobSupervisor(
        uow_factory,
        runner,
        log_client,
        ReplayScheduler(CroniterCronEvaluator()),
        worker_count=config.REPLAY_WORKER_COUNT,
        poll_interval=config.REPLAY_POLL_INTERVAL_SECONDS,
        lease_ttl_seconds=config.REPLAY_LEASE_TTL_SECONDS,
        default_retry_delay_seconds=config.REPLAY_DEFAULT_RETRY_DELAY_SECONDS,
        history_retention_days=config.REPLAY_HISTORY_RETENTION_DAYS,
    )


def get_log_client() -> LogClient:
    global _log_client
    if _log_client is None:
        _log_client = build_log_client()
    return _log_client


def get_supervisor() -> ReplayJobSupervisor:
    """
    Supervisor used by the API process.

    It is never started here: jobs are executed by the worker process, the
    API only persists changes and flags cancellations.
    """
    global _supervisor
    if _supervisor is None:
        _supervisor = build_supervisor(partial(SqlAlchemyUnitOfWork, AsyncSessionLocal), get_log_client())
    return _supervisor


async def close_log_client() -> None:
    global _log_client, _supervisor
    if _log_client is not None:
        await _log_client.close()
    _log_client = None
    _supervisor = None
