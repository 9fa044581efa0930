"""Event Hub publisher exposed as a sink."""

import asyncio
import logging
import threading
from collections.abc import Callable
from types import TracebackType
from typing import Any

from azure.core.exceptions import AzureError
from azure.eventhub import EventData, EventHubProducerClient
from pydantic import ValidationError

from ..config.models import PublisherConfig
from ..core.exceptions import ConfigurationError, EventHubError, PublisherClosedError
from ..core.interfaces import IEventObserver
from .client import with_entity_path

logger = logging.getLogger(__name__)

# Builds the producer from a connection string that already carries EntityPath
ProducerFactory = Callable[[str], Any]


def _default_producer(connection_string: str) -> EventHubProducerClient:
    return EventHubProducerClient.from_connection_string(connection_string)


class EventHubPublisher(IEventObserver):
    """Publishes events to an Event Hub.

    send() blocks until the broker acknowledges the event; send_async() runs
    it on a worker thread. As an observer, the publisher can be subscribed to
    any source: errors and completion dispose it.
    """

    def __init__(
        self,
        connection_string: str,
        entity_path: str,
        *,
        producer_factory: ProducerFactory | None = None,
    ) -> None:
        """Initialize the publisher.

        Args:
            connection_string: Event Hubs namespace connection string
            entity_path: Name of the Event Hub to publish to
            producer_factory: Overrides how the SDK producer is built

        Raises:
            ConfigurationError: If either argument is None or blank
        """
        try:
            self.config = PublisherConfig(
                connection_string=connection_string,
                entity_path=entity_path,
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid publisher settings: {e}") from e

        factory = producer_factory or _default_producer
        self._producer: Any | None = factory(
            with_entity_path(self.config.connection_string.get_secret_value(), self.config.entity_path)
        )
        self._swap_lock = threading.Lock()
        self.events_sent = 0

    @classmethod
    def from_config(
        cls,
        config: PublisherConfig,
        producer_factory: ProducerFactory | None = None,
    ) -> "EventHubPublisher":
        """Create a publisher from configuration."""
        return cls(
            config.connection_string.get_secret_value(),
            config.entity_path,
            producer_factory=producer_factory,
        )

    @property
    def closed(self) -> bool:
        """Check if the publisher was disposed."""
        return self._producer is None

    def send(self, event: EventData | str | bytes) -> None:
        """Send one event, blocking until the broker acknowledges it.

        Raises:
            PublisherClosedError: If the publisher was disposed
            EventHubError: If the broker rejects the send
        """
        producer = self._producer
        if producer is None:
            raise PublisherClosedError(self.config.entity_path)

        if not isinstance(event, EventData):
            event = EventData(event)

        try:
            producer.send_batch([event])
        except AzureError as e:
            logger.error(f"Failed to send event to {self.config.entity_path}: {str(e)}")
            raise EventHubError(str(e), original_error=e) from e

        self.events_sent += 1
        logger.debug(f"Event sent to {self.config.entity_path}")

    async def send_async(self, event: EventData | str | bytes) -> None:
        """Send one event without blocking the event loop."""
        await asyncio.to_thread(self.send, event)

    async def on_next(self, event: Any) -> None:
        await self.send_async(event)

    async def on_error(self, error: Exception) -> None:
        logger.info(f"Source failed, disposing publisher for {self.config.entity_path}: {str(error)}")
        self.dispose()

    async def on_completed(self) -> None:
        self.dispose()

    def dispose(self) -> None:
        """Close the producer exactly once; later calls do nothing."""
        with self._swap_lock:
            producer, self._producer = self._producer, None

        if producer is None:
            return

        try:
            producer.close()
            logger.info(f"Publisher for {self.config.entity_path} closed")
        except Exception as e:
            logger.warning(f"Ignoring error closing publisher for {self.config.entity_path}: {str(e)}")

    def __enter__(self) -> "EventHubPublisher":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.dispose()
