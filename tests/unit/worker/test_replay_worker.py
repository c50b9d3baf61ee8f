"""Unit tests for the replay worker entry point"""
import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from src.worker.replay_worker import run_replay_worker


@pytest.fixture
def mock_engine():
    engine = MagicMock()
    engine.dispose = AsyncMock()
    return engine


@pytest.fixture
def mock_supervisor():
    supervisor = MagicMock()
    supervisor.start = AsyncMock()
    supervisor.stop = AsyncMock()
    return supervisor


@pytest.fixture
def mock_log_client():
    client = MagicMock()
    client.close = AsyncMock()
    return client


@pytest.mark.asyncio
class TestRunReplayWorker:

    async def test_runs_supervisor_and_cleans_up(self, mock_engine, mock_supervisor, mock_log_client):
        with patch("src.worker.replay_worker.create_async_engine", return_value=mock_engine), \
                patch("src.worker.replay_worker.build_log_client", return_value=mock_log_client), \
                patch("src.worker.replay_worker.build_supervisor", return_value=mock_supervisor) as build:
            await run_replay_worker("sqlite+aiosqlite://")

        mock_supervisor.start.assert_called_once()
        mock_supervisor.stop.assert_called_once()
        mock_log_client.close.assert_called_once()
        mock_engine.dispose.assert_called_once()
        assert build.call_args[0][1] is mock_log_client

    async def test_cleans_up_on_cancellation(self, mock_engine, mock_supervisor, mock_log_client):
        mock_supervisor.start = AsyncMock(side_effect=asyncio.CancelledError())

        with patch("src.worker.replay_worker.create_async_engine", return_value=mock_engine), \
                patch("src.worker.replay_worker.build_log_client", return_value=mock_log_client), \
                patch("src.worker.replay_worker.build_supervisor", return_value=mock_supervisor):
            with pytest.raises(asyncio.CancelledError):
                await run_replay_worker("sqlite+aiosqlite://")

        mock_supervisor.stop.assert_called_once()
        mock_log_client.close.assert_called_once()
        mock_engine.dispose.assert_called_once()
