"""Tests for the Azure Event Hubs adapter."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from azure.core.exceptions import AzureError

from conftest import CONNECTION_STRING
from hubstream.core.exceptions import EventHubError
from hubstream.eventhub.client import (
    AzureEventHubConnection,
    AzurePartitionReceiver,
    describe_event,
    with_entity_path,
)


class ScriptedConsumerClient:
    """Stand-in for EventHubConsumerClient.receive_batch."""

    def __init__(self, batches, error=None, reported_errors=()):
        self.batches = list(batches)
        self.error = error
        self.reported_errors = list(reported_errors)
        self.kwargs = None
        self.retrying = False

    async def receive_batch(self, on_event_batch, on_error=None, **kwargs):
        self.kwargs = kwargs
        for batch in self.batches:
            await on_event_batch(MagicMock(), batch)
        if self.error is not None:
            raise self.error
        for error in self.reported_errors:
            # The SDK reports link failures to on_error and keeps retrying
            await on_error(MagicMock(), error)
            self.retrying = True
        await asyncio.Event().wait()


class TestWithEntityPath:
    """Connection string scoping."""

    def test_appends_entity_path(self):
        """Test EntityPath is appended when absent."""
        result = with_entity_path(CONNECTION_STRING, "telemetry")
        assert result.endswith(";EntityPath=telemetry")
        assert result.startswith("Endpoint=sb://test.servicebus.windows.net/")

    def test_replaces_existing_entity_path(self):
        """Test an existing EntityPath is replaced."""
        result = with_entity_path(CONNECTION_STRING + ";EntityPath=old", "new")
        assert "EntityPath=old" not in result
        assert result.count("EntityPath=") == 1
        assert result.endswith("EntityPath=new")


class TestAzurePartitionReceiver:
    """Test suite for AzurePartitionReceiver."""

    @pytest.mark.asyncio
    async def test_receive_returns_batches_in_order(self):
        """Test batches pushed by the SDK are handed out one per receive call."""
        client = ScriptedConsumerClient([["a", "b"], [], ["c"]])
        receiver = AzurePartitionReceiver(client, "$Default", "0", "@latest", max_wait_time=1.0)

        assert await receiver.receive(10) == ["a", "b"]
        assert await receiver.receive(10) == []
        assert await receiver.receive(10) == ["c"]
        assert client.kwargs == {
            "max_batch_size": 10,
            "max_wait_time": 1.0,
            "partition_id": "0",
            "starting_position": "@latest",
        }

        await receiver.close()

    @pytest.mark.asyncio
    async def test_pump_failure_raises(self):
        """Test an SDK failure surfaces as EventHubError from receive."""
        client = ScriptedConsumerClient([], error=AzureError("link detached"))
        receiver = AzurePartitionReceiver(client, "$Default", "0", "@latest", max_wait_time=1.0)

        with pytest.raises(EventHubError, match="link detached"):
            await receiver.receive(10)

        await receiver.close()

    @pytest.mark.asyncio
    async def test_reported_error_raises_while_sdk_retries(self):
        """Test an error passed to on_error ends receive even though the SDK keeps running."""
        failure = AzureError("connect call failed")
        client = ScriptedConsumerClient([], reported_errors=[failure])
        receiver = AzurePartitionReceiver(client, "$Default", "0", "@latest", max_wait_time=1.0)

        with pytest.raises(EventHubError, match="connect call failed") as exc_info:
            await asyncio.wait_for(receiver.receive(10), timeout=1)

        assert exc_info.value.original_error is failure
        assert client.retrying is True
        with pytest.raises(EventHubError, match="connect call failed"):
            await receiver.receive(10)

        await receiver.close()

    @pytest.mark.asyncio
    async def test_batch_before_reported_error_is_delivered(self):
        """Test a batch queued before the failure is returned before the error."""
        client = ScriptedConsumerClient([["a"]], reported_errors=[ConnectionError("link detached")])
        receiver = AzurePartitionReceiver(client, "$Default", "0", "@latest", max_wait_time=1.0)

        assert await asyncio.wait_for(receiver.receive(10), timeout=1) == ["a"]
        with pytest.raises(EventHubError, match="link detached") as exc_info:
            await asyncio.wait_for(receiver.receive(10), timeout=1)
        assert isinstance(exc_info.value.original_error, ConnectionError)

        await receiver.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent_and_blocks_receive(self):
        """Test close stops the pump once and later receives fail."""
        client = ScriptedConsumerClient([["a"]])
        receiver = AzurePartitionReceiver(client, "$Default", "0", "@latest", max_wait_time=1.0)
        await receiver.receive(5)

        await receiver.close()
        await receiver.close()

        with pytest.raises(EventHubError, match="closed"):
            await receiver.receive(5)


class TestAzureEventHubConnection:
    """Test suite for AzureEventHubConnection."""

    def test_client_created_with_entity_path(self):
        """Test the SDK client receives the entity-scoped connection string."""
        with patch('hubstream.eventhub.client.EventHubConsumerClient') as mock_client_cls:
            AzureEventHubConnection(CONNECTION_STRING, "telemetry", "readers")

            mock_client_cls.from_connection_string.assert_called_once_with(
                CONNECTION_STRING + ";EntityPath=telemetry",
                consumer_group="readers",
            )

    @pytest.mark.asyncio
    async def test_get_partition_ids(self):
        """Test partition ids come from the SDK client."""
        with patch('hubstream.eventhub.client.EventHubConsumerClient') as mock_client_cls:
            mock_instance = AsyncMock()
            mock_instance.get_partition_ids.return_value = ["0", "1", "2"]
            mock_client_cls.from_connection_string.return_value = mock_instance

            connection = AzureEventHubConnection(CONNECTION_STRING, "telemetry", "$Default")

            assert await connection.get_partition_ids() == ["0", "1", "2"]

    @pytest.mark.asyncio
    async def test_get_partition_ids_wraps_azure_errors(self):
        """Test SDK errors are wrapped in EventHubError."""
        with patch('hubstream.eventhub.client.EventHubConsumerClient') as mock_client_cls:
            mock_instance = AsyncMock()
            mock_instance.get_partition_ids.side_effect = AzureError("unauthorized")
            mock_client_cls.from_connection_string.return_value = mock_instance

            connection = AzureEventHubConnection(CONNECTION_STRING, "telemetry", "$Default")

            with pytest.raises(EventHubError) as exc_info:
                await connection.get_partition_ids()
            assert isinstance(exc_info.value.original_error, AzureError)

    @pytest.mark.asyncio
    async def test_receiver_reuses_client_per_consumer_group(self):
        """Test receivers share the client of their consumer group."""
        with patch('hubstream.eventhub.client.EventHubConsumerClient') as mock_client_cls:
            mock_client_cls.from_connection_string.side_effect = lambda *a, **kw: AsyncMock()

            connection = AzureEventHubConnection(CONNECTION_STRING, "telemetry", "$Default")
            connection.create_receiver("$Default", "0", "@latest")
            receiver = connection.create_receiver("readers", "1", "-1")

            assert mock_client_cls.from_connection_string.call_count == 2
            assert receiver.consumer_group == "readers"
            assert receiver.partition_id == "1"

    @pytest.mark.asyncio
    async def test_close_closes_clients_once(self):
        """Test closing twice closes each SDK client once."""
        with patch('hubstream.eventhub.client.EventHubConsumerClient') as mock_client_cls:
            mock_instance = AsyncMock()
            mock_client_cls.from_connection_string.return_value = mock_instance

            connection = AzureEventHubConnection(CONNECTION_STRING, "telemetry", "$Default")
            await connection.close()
            await connection.close()

            mock_instance.close.assert_awaited_once()
            with pytest.raises(EventHubError):
                connection.create_receiver("$Default", "0", "@latest")

    @pytest.mark.asyncio
    async def test_close_continues_after_client_failure(self):
        """Test a failing client close does not leave the other clients open."""
        with patch('hubstream.eventhub.client.EventHubConsumerClient') as mock_client_cls:
            failing, healthy = AsyncMock(), AsyncMock()
            failing.close.side_effect = AzureError("connection reset")
            mock_client_cls.from_connection_string.side_effect = [failing, healthy]

            connection = AzureEventHubConnection(CONNECTION_STRING, "telemetry", "$Default")
            connection.create_receiver("readers", "0", "@latest")
            await connection.close()

            failing.close.assert_awaited_once()
            healthy.close.assert_awaited_once()


def test_describe_event():
    """Test broker metadata is summarized for logging."""
    event = MagicMock(sequence_number=7, offset="1024", enqueued_time="2024-01-01")
    assert describe_event(event) == {
        "sequence_number": 7,
        "offset": "1024",
        "enqueued_time": "2024-01-01",
    }
