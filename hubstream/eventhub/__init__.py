"""Event Hub package for hubstream."""

from .models import (
    ConnectionFactory,
    Emitter,
    IEventHubConnection,
    IPartitionReceiver,
    ListenerStats,
    StreamSession,
)

# Import classes that depend on models
from .client import AzureEventHubConnection, AzurePartitionReceiver, with_entity_path
from .connection import ConnectionManager
from .listener import EventHubListener
from .multiplexer import StreamMultiplexer, Subscription
from .poller import BatchPoller, PollerState
from .publisher import EventHubPublisher
from .validator import PartitionValidator

__all__ = [
    "IEventHubConnection",
    "IPartitionReceiver",
    "ConnectionFactory",
    "Emitter",
    "ListenerStats",
    "StreamSession",
    "AzureEventHubConnection",
    "AzurePartitionReceiver",
    "with_entity_path",
    "ConnectionManager",
    "PartitionValidator",
    "BatchPoller",
    "PollerState",
    "StreamMultiplexer",
    "Subscription",
    "EventHubListener",
    "EventHubPublisher",
]
