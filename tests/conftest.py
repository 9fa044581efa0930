"""Shared test fixtures for the hubstream tests."""

import asyncio
from typing import Any

import pytest

from hubstream.core.interfaces import IEventObserver
from hubstream.eventhub.connection import ConnectionManager
from hubstream.eventhub.models import IEventHubConnection, IPartitionReceiver

CONNECTION_STRING = "Endpoint=sb://test.servicebus.windows.net/;SharedAccessKeyName=test;SharedAccessKey=test"


class FakeReceiver(IPartitionReceiver):
    """In-memory partition receiver serving the broker's scripted batches."""

    def __init__(self, broker: "FakeBroker", consumer_group: str, partition_id: str, starting_position: str) -> None:
        self.broker = broker
        self.consumer_group = consumer_group
        self.partition_id = partition_id
        self.starting_position = starting_position
        self.close_calls = 0

    async def receive(self, max_batch_size: int) -> list[Any]:
        loop = asyncio.get_running_loop()
        self.broker.receive_calls.append((loop.time(), max_batch_size))
        await asyncio.sleep(0)
        if self.broker.receive_error is not None:
            raise self.broker.receive_error
        if self.broker.batches:
            return list(self.broker.batches.pop(0))
        return []

    async def close(self) -> None:
        self.close_calls += 1
        self.broker.receiver_closes += 1
        if self.broker.close_error is not None:
            raise self.broker.close_error


class FakeConnection(IEventHubConnection):
    """In-memory connection to the fake broker."""

    def __init__(self, broker: "FakeBroker", connection_string: str, entity_path: str, consumer_group: str) -> None:
        self.broker = broker
        self.connection_string = connection_string
        self.entity_path = entity_path
        self.consumer_group = consumer_group
        self.receivers: list[FakeReceiver] = []

    async def get_partition_ids(self) -> list[str]:
        self.broker.partition_queries += 1
        await self.broker.startup_gate.wait()
        return list(self.broker.partition_ids)

    def create_receiver(self, consumer_group: str, partition_id: str, starting_position: str) -> FakeReceiver:
        receiver = FakeReceiver(self.broker, consumer_group, partition_id, starting_position)
        self.receivers.append(receiver)
        self.broker.receivers.append(receiver)
        return receiver

    async def close(self) -> None:
        self.broker.connection_closes += 1
        self.broker.open_connections -= 1
        if self.broker.close_error is not None:
            raise self.broker.close_error


class FakeBroker:
    """Scriptable stand-in for an Event Hub namespace."""

    def __init__(self, partition_ids: list[str] | None = None) -> None:
        self.partition_ids = partition_ids if partition_ids is not None else ["0", "1"]
        self.batches: list[list[Any]] = []
        self.receive_error: Exception | None = None
        self.close_error: Exception | None = None
        self.startup_gate = asyncio.Event()
        self.startup_gate.set()

        self.connections: list[FakeConnection] = []
        self.receivers: list[FakeReceiver] = []
        self.receive_calls: list[tuple[float, int]] = []
        self.partition_queries = 0
        self.connection_closes = 0
        self.receiver_closes = 0
        self.open_connections = 0
        self.max_open_connections = 0

    @property
    def opens(self) -> int:
        return len(self.connections)

    def connect(self, connection_string: str, entity_path: str, consumer_group: str) -> FakeConnection:
        connection = FakeConnection(self, connection_string, entity_path, consumer_group)
        self.connections.append(connection)
        self.open_connections += 1
        self.max_open_connections = max(self.max_open_connections, self.open_connections)
        return connection


class RecordingObserver(IEventObserver):
    """Observer that records every notification."""

    def __init__(self) -> None:
        self.events: list[Any] = []
        self.event_times: list[float] = []
        self.errors: list[Exception] = []
        self.completed = 0

    async def on_next(self, event: Any) -> None:
        self.events.append(event)
        self.event_times.append(asyncio.get_running_loop().time())

    async def on_error(self, error: Exception) -> None:
        self.errors.append(error)

    async def on_completed(self) -> None:
        self.completed += 1

    @property
    def terminated(self) -> bool:
        return bool(self.errors) or self.completed > 0


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Yield to the event loop until predicate() holds."""
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture
def fake_broker():
    """Fake broker with partitions "0" and "1"."""
    return FakeBroker()


@pytest.fixture
def connection_manager(fake_broker):
    """Connection manager opening connections on the fake broker."""
    return ConnectionManager(connection_factory=fake_broker.connect)


@pytest.fixture
def observer():
    """Recording observer."""
    return RecordingObserver()
