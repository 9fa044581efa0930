"""Azure Event Hub partition exposed as a shared push stream."""

import asyncio
from datetime import timedelta

import structlog
from pydantic import ValidationError

from ..config.models import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CONSUMER_GROUP,
    DEFAULT_POLLING_PERIOD,
    DEFAULT_STARTING_POSITION,
    ListenerConfig,
)
from ..core.exceptions import ConfigurationError
from ..core.interfaces import IEventObserver, IEventSource
from .connection import ConnectionManager
from .models import Emitter, ListenerStats, StreamSession
from .multiplexer import StreamMultiplexer, Subscription
from .poller import BatchPoller
from .validator import PartitionValidator

logger = structlog.get_logger(__name__)


class EventHubListener(IEventSource):
    """Exposes one partition of an Event Hub as a subscribable push stream.

    All subscribers share one connection. It is opened when the first
    subscriber attaches and closed when the last one detaches.

    Example:
        listener = EventHubListener.create("telemetry", connection_string, "0")
        subscription = await listener.subscribe(CallbackObserver(handle_event))
        ...
        await subscription.dispose()
    """

    def __init__(
        self,
        entity_path: str,
        connection_string: str,
        consumer_group: str | None,
        partition_id: str,
        polling_period: timedelta = DEFAULT_POLLING_PERIOD,
        batch_size: int = DEFAULT_BATCH_SIZE,
        *,
        starting_position: str = DEFAULT_STARTING_POSITION,
        receive_timeout: float = 5.0,
        connection_manager: ConnectionManager | None = None,
    ) -> None:
        """Initialize the listener.

        Args:
            entity_path: Name of the Event Hub to receive from
            connection_string: Event Hubs namespace connection string
            consumer_group: Consumer group; empty or None selects "$Default"
            partition_id: Partition to read
            polling_period: Wait after an empty batch before polling again
            batch_size: Maximum events requested per receive call
            starting_position: Where a new session starts reading
            receive_timeout: Seconds the broker waits before returning an empty batch
            connection_manager: Overrides how connections are opened and closed

        Raises:
            ConfigurationError: If an argument is missing or invalid
        """
        if entity_path is None:
            raise ConfigurationError("entity_path must not be None")
        if connection_string is None:
            raise ConfigurationError("connection_string must not be None")

        try:
            config = ListenerConfig(
                entity_path=entity_path,
                connection_string=connection_string,
                consumer_group=consumer_group,
                partition_id=partition_id,
                polling_period=polling_period,
                batch_size=batch_size,
                starting_position=starting_position,
                receive_timeout=receive_timeout,
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid listener settings: {e}") from e

        self._init_from_config(config, connection_manager)

    @classmethod
    def create(cls, entity_path: str, connection_string: str, partition_id: str) -> "EventHubListener":
        """Create a listener with the default consumer group, a 30 second period and batches of 10."""
        return cls(
            entity_path,
            connection_string,
            DEFAULT_CONSUMER_GROUP,
            partition_id,
            DEFAULT_POLLING_PERIOD,
            DEFAULT_BATCH_SIZE,
        )

    @classmethod
    def from_config(
        cls,
        config: ListenerConfig,
        connection_manager: ConnectionManager | None = None,
    ) -> "EventHubListener":
        """Create a listener from an already validated configuration."""
        listener = cls.__new__(cls)
        listener._init_from_config(config, connection_manager)
        return listener

    def _init_from_config(
        self,
        config: ListenerConfig,
        connection_manager: ConnectionManager | None,
    ) -> None:
        self.config = config
        self.stats = ListenerStats()
        self._connections = connection_manager or ConnectionManager(receive_timeout=config.receive_timeout)
        self._validator = PartitionValidator()
        self._poller = BatchPoller(
            self._connections,
            batch_size=config.batch_size,
            polling_period=config.polling_period,
            stats=self.stats,
        )
        self._stream = StreamMultiplexer(
            self._run_session,
            name=f"{config.entity_path}/{config.partition_id}",
        )

    @property
    def subscriber_count(self) -> int:
        """Number of attached subscribers."""
        return self._stream.subscriber_count

    async def subscribe(self, observer: IEventObserver) -> Subscription:
        """Attach an observer to the partition stream."""
        if observer is None:
            raise ValueError("observer must not be None")
        return await self._stream.subscribe(observer)

    async def close(self) -> None:
        """Stop streaming and complete every subscriber."""
        await self._stream.close()

    async def _run_session(self, emit: Emitter, cancel_event: asyncio.Event) -> None:
        """Connect, validate the partition and poll until cancelled."""
        config = self.config
        connection = await self._connections.open(
            config.connection_string.get_secret_value(),
            config.entity_path,
            config.consumer_group,
        )
        session = StreamSession(connection=connection, cancel_event=cancel_event)
        self.stats.record_session_started()

        try:
            await self._validator.validate(connection, config.partition_id)
            session.receiver = connection.create_receiver(
                config.consumer_group,
                config.partition_id,
                config.starting_position,
            )
        except Exception:
            await self._connections.close_session(session)
            self.stats.record_session_closed()
            raise

        try:
            await self._poller.run(session, emit)
        finally:
            self.stats.record_session_closed()
