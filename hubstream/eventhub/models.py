"""Event Hub integration models and interfaces."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Delivers one event to the current subscriber set
Emitter = Callable[[Any], Awaitable[None]]


class IPartitionReceiver(ABC):
    """Pull-style reader bound to one (consumer group, partition) pair."""

    consumer_group: str
    partition_id: str

    @abstractmethod
    async def receive(self, max_batch_size: int) -> list[Any]:
        """Receive up to max_batch_size events; an empty list means none arrived."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the receiver."""
        pass


class IEventHubConnection(ABC):
    """Logical connection to one Event Hub entity."""

    entity_path: str

    @abstractmethod
    async def get_partition_ids(self) -> list[str]:
        """Get the partition ids currently reported by the broker."""
        pass

    @abstractmethod
    def create_receiver(
        self,
        consumer_group: str,
        partition_id: str,
        starting_position: str,
    ) -> IPartitionReceiver:
        """Create a receiver for one partition."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection."""
        pass


# Opens a connection from (connection string, entity path, consumer group)
ConnectionFactory = Callable[[str, str, str], IEventHubConnection]


@dataclass
class StreamSession:
    """Resources of one activation period of a listener."""
    connection: IEventHubConnection
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    receiver: IPartitionReceiver | None = None
    closed: bool = False

    @property
    def cancelled(self) -> bool:
        """Check if teardown was requested."""
        return self.cancel_event.is_set()


@dataclass
class ListenerStats:
    """Listener statistics."""
    sessions_started: int = 0
    sessions_closed: int = 0
    batches_received: int = 0
    empty_polls: int = 0
    events_delivered: int = 0
    last_event_time: datetime | None = None

    def record_session_started(self) -> None:
        """Record a session start."""
        self.sessions_started += 1

    def record_session_closed(self) -> None:
        """Record a session teardown."""
        self.sessions_closed += 1

    def record_batch(self, count: int) -> None:
        """Record a receive call and the number of events it returned."""
        if count:
            self.batches_received += 1
        else:
            self.empty_polls += 1

    def record_event_delivered(self) -> None:
        """Record an event delivered to the subscriber set."""
        self.events_delivered += 1
        self.last_event_time = datetime.utcnow()
