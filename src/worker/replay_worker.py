"""Replay Worker

Standalone process that executes replay jobs: polls the job store for due
jobs, runs them on a pool of worker coroutines and applies retries and
schedules.
"""
import asyncio
import logging
from functools import partial
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from config import ApplicationConfig
from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.depends import build_log_client, build_supervisor

logger = logging.getLogger(__name__)


async def run_replay_worker(database_url: str, config=ApplicationConfig):
    """
    Main entry point for running the replay worker.

    Args:
        database_url: Database connection URL
        config: Settings for the log client and the supervisor
    """
    # Create async engine and session factory
    engine = create_async_engine(database_url, echo=False)
    AsyncSessionLocal = sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )

    log_client = build_log_client(config)
    supervisor = build_supervisor(partial(SqlAlchemyUnitOfWork, AsyncSessionLocal), log_client, config)

    try:
        await supervisor.start()
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Received shutdown signal")
        raise
    finally:
        await supervisor.stop()
        await log_client.close()
        await engine.dispose()


if __name__ == "__main__":
    """
    Entry point for running the replay worker as a standalone process.

    Usage:
        python -m src.worker.replay_worker

    Or with a custom database:
        DB_URI="postgresql+asyncpg://..." python -m src.worker.replay_worker
    """
    import os
    import sys

    # Add parent directory to path for imports
    sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, str(ApplicationConfig.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    database_url = os.environ.get("DB_URI", ApplicationConfig.DB_URI)

    logger.info(f"Starting ReplayWorker with DB: {database_url[:50]}...")
    logger.info(f"Log cluster: {ApplicationConfig.KAFKA_BOOTSTRAP_SERVERS}")

    try:
        asyncio.run(run_replay_worker(database_url))
    except KeyboardInterrupt:
        logger.info("ReplayWorker stopped")
