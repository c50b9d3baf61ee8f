"""Unit tests for AIOKafkaLogClient reader lifecycle (consumers mocked)"""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from aiokafka.errors import KafkaConnectionError
from src.adapter.services.aiokafka_log_client import AIOKafkaLogClient
from src.app.services.log_client import TransientLogError


async def read(client, partition=0):
    return [record async for record in client.read_range("orders", partition, 0, 10, 5)]


@pytest.fixture
def consumers():
    """Every consumer the client creates, in creation order"""
    created = []

    def fake_consumer(**kwargs) -> MagicMock:
        consumer = MagicMock()
        consumer.start = AsyncMock()
        consumer.stop = AsyncMock()
        consumer.getmany = AsyncMock(return_value={})
        created.append(consumer)
        return consumer

    with patch("src.adapter.services.aiokafka_log_client.AIOKafkaConsumer", side_effect=fake_consumer):
        yield created


@pytest.fixture
def client():
    return AIOKafkaLogClient("localhost:9092")


@pytest.mark.asyncio
class TestAIOKafkaLogClientReaders:

    async def test_reads_of_a_partition_share_one_consumer(self, client, consumers):
        await read(client)
        await read(client)
        await read(client, partition=1)

        assert len(consumers) == 2
        assert consumers[0].getmany.await_count == 2

    async def test_release_stops_and_evicts_readers(self, client, consumers):
        # Arrange
        await read(client, partition=0)
        await read(client, partition=1)

        # Act
        await client.release("orders", [0, 1])

        # Assert
        for consumer in consumers:
            consumer.stop.assert_awaited_once()
        assert client._readers == {}

    async def test_read_after_release_starts_fresh_consumer(self, client, consumers):
        await read(client)
        await client.release("orders", [0])

        await read(client)

        assert len(consumers) == 2
        consumers[0].stop.assert_awaited_once()
        consumers[1].stop.assert_not_awaited()

    async def test_release_of_unread_partition_is_a_no_op(self, client, consumers):
        await client.release("orders", [3])

        assert consumers == []

    async def test_close_stops_remaining_readers(self, client, consumers):
        await read(client)

        await client.close()

        consumers[0].stop.assert_awaited_once()
        assert client._readers == {}

    async def test_connection_errors_are_transient(self, client, consumers):
        await read(client)
        consumers[0].getmany.side_effect = KafkaConnectionError()

        with pytest.raises(TransientLogError):
            await read(client)
