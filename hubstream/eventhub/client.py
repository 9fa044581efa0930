"""Azure Event Hubs client implementation."""

import asyncio
import logging
from typing import Any

from azure.core.exceptions import AzureError
from azure.eventhub import EventData
from azure.eventhub.aio import EventHubConsumerClient, PartitionContext

from ..core.exceptions import EventHubError
from .models import IEventHubConnection, IPartitionReceiver

logger = logging.getLogger(__name__)

ENTITY_PATH_KEY = "EntityPath"


def with_entity_path(connection_string: str, entity_path: str) -> str:
    """Return the connection string scoped to entity_path.

    An existing EntityPath segment is replaced, otherwise one is appended.
    """
    segments = [s for s in connection_string.strip().split(";") if s.strip()]
    segments = [
        s for s in segments
        if s.split("=", 1)[0].strip().lower() != ENTITY_PATH_KEY.lower()
    ]
    segments.append(f"{ENTITY_PATH_KEY}={entity_path}")
    return ";".join(segments)


class AzurePartitionReceiver(IPartitionReceiver):
    """Pull-style receiver over EventHubConsumerClient.receive_batch.

    The SDK pushes batches into a callback; a one-slot queue hands each batch
    to the next receive() call, so the SDK is never more than one batch ahead
    of the caller. With max_wait_time set the SDK reports idle periods as
    empty batches, which surface here as empty lists.

    The SDK reports link and connection failures through on_error and then
    retries on its own. The first such error is kept and raised from the
    next receive() so the caller ends the session instead of waiting.
    """

    def __init__(
        self,
        client: EventHubConsumerClient,
        consumer_group: str,
        partition_id: str,
        starting_position: str,
        max_wait_time: float,
    ) -> None:
        self._client = client
        self.consumer_group = consumer_group
        self.partition_id = partition_id
        self._starting_position = starting_position
        self._max_wait_time = max_wait_time
        self._batches: asyncio.Queue[list[EventData]] = asyncio.Queue(maxsize=1)
        self._pump: asyncio.Task[None] | None = None
        self._failure: Exception | None = None
        self._failed = asyncio.Event()
        self._closed = False

    async def receive(self, max_batch_size: int) -> list[EventData]:
        """Receive the next batch of at most max_batch_size events."""
        if self._closed:
            raise EventHubError(f"Receiver for partition {self.partition_id} is closed")
        if self._failure is not None:
            raise self._receive_error(self._failure)

        if self._pump is None:
            self._pump = asyncio.create_task(self._run_pump(max_batch_size))

        next_batch = asyncio.ensure_future(self._batches.get())
        failed = asyncio.ensure_future(self._failed.wait())
        try:
            done, _ = await asyncio.wait(
                {next_batch, failed, self._pump},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for waiter in (next_batch, failed):
                if not waiter.done():
                    waiter.cancel()

        # A batch queued before the failure is still handed out
        if next_batch in done:
            return next_batch.result()

        if self._failure is not None:
            raise self._receive_error(self._failure)

        if self._pump.cancelled():
            raise EventHubError(f"Receive on partition {self.partition_id} was cancelled")
        error = self._pump.exception()
        if isinstance(error, AzureError):
            raise EventHubError(str(error), original_error=error) from error
        if error is not None:
            raise error
        raise EventHubError(f"Receive on partition {self.partition_id} stopped unexpectedly")

    async def _run_pump(self, max_batch_size: int) -> None:
        logger.debug(
            f"Starting receive pump: partition={self.partition_id}, "
            f"consumer_group={self.consumer_group}, batch_size={max_batch_size}"
        )
        await self._client.receive_batch(
            on_event_batch=self._on_event_batch,
            on_error=self._on_error,
            max_batch_size=max_batch_size,
            max_wait_time=self._max_wait_time,
            partition_id=self.partition_id,
            starting_position=self._starting_position,
        )

    async def _on_event_batch(self, partition_context: PartitionContext, events: list[EventData]) -> None:
        await self._batches.put(list(events))

    async def _on_error(self, partition_context: PartitionContext | None, error: Exception) -> None:
        logger.error(f"Receive failed on partition {self.partition_id}: {str(error)}")
        if self._failure is None:
            self._failure = error
            self._failed.set()

    def _receive_error(self, error: Exception) -> EventHubError:
        if isinstance(error, EventHubError):
            return error
        return EventHubError(str(error), original_error=error)

    async def close(self) -> None:
        """Stop the receive pump."""
        if self._closed:
            return
        self._closed = True

        if self._pump is not None:
            self._pump.cancel()
            try:
                await self._pump
            except asyncio.CancelledError:
                pass
            self._pump = None


class AzureEventHubConnection(IEventHubConnection):
    """Connection to one Event Hub entity backed by EventHubConsumerClient."""

    def __init__(
        self,
        connection_string: str,
        entity_path: str,
        consumer_group: str,
        receive_timeout: float = 5.0,
    ) -> None:
        self.entity_path = entity_path
        self._connection_string = with_entity_path(connection_string, entity_path)
        self._consumer_group = consumer_group
        self._receive_timeout = receive_timeout
        self._clients: dict[str, EventHubConsumerClient] = {}
        self._closed = False

        self._client_for(consumer_group)

    def _client_for(self, consumer_group: str) -> EventHubConsumerClient:
        """Get or create the SDK client for a consumer group."""
        client = self._clients.get(consumer_group)
        if client is None:
            client = EventHubConsumerClient.from_connection_string(
                self._connection_string,
                consumer_group=consumer_group,
            )
            self._clients[consumer_group] = client
        return client

    async def get_partition_ids(self) -> list[str]:
        """Get the partition ids of the entity."""
        try:
            return list(await self._client_for(self._consumer_group).get_partition_ids())
        except AzureError as e:
            logger.error(f"Failed to get partition ids for {self.entity_path}: {str(e)}")
            raise EventHubError(str(e), original_error=e) from e

    def create_receiver(
        self,
        consumer_group: str,
        partition_id: str,
        starting_position: str,
    ) -> AzurePartitionReceiver:
        """Create a receiver for one partition of the entity."""
        if self._closed:
            raise EventHubError(f"Connection to {self.entity_path} is closed")

        return AzurePartitionReceiver(
            client=self._client_for(consumer_group),
            consumer_group=consumer_group,
            partition_id=partition_id,
            starting_position=starting_position,
            max_wait_time=self._receive_timeout,
        )

    async def close(self) -> None:
        """Close every SDK client of the connection."""
        if self._closed:
            return
        self._closed = True

        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"Ignoring error closing consumer client for {self.entity_path}: {str(e)}")


def connect(
    connection_string: str,
    entity_path: str,
    consumer_group: str,
    receive_timeout: float = 5.0,
) -> AzureEventHubConnection:
    """Default connection factory."""
    return AzureEventHubConnection(
        connection_string=connection_string,
        entity_path=entity_path,
        consumer_group=consumer_group,
        receive_timeout=receive_timeout,
    )


def describe_event(event: Any) -> dict[str, Any]:
    """Summarize an event's broker metadata for logging."""
    return {
        "sequence_number": getattr(event, "sequence_number", None),
        "offset": getattr(event, "offset", None),
        "enqueued_time": str(getattr(event, "enqueued_time", None)),
    }
