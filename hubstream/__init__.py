"""Azure Event Hub partitions as shared push streams, and a publishing sink."""

from .config import ConfigLoader, ListenerConfig, PublisherConfig
from .core import (
    CallbackObserver,
    ConfigurationError,
    EventHubError,
    HubStreamError,
    IEventObserver,
    IEventSource,
    ISubscription,
    PartitionNotFoundError,
    PublisherClosedError,
)
from .eventhub import EventHubListener, EventHubPublisher, StreamMultiplexer

__version__ = "0.1.0"

__all__ = [
    "EventHubListener",
    "EventHubPublisher",
    "StreamMultiplexer",
    "ListenerConfig",
    "PublisherConfig",
    "ConfigLoader",
    "IEventObserver",
    "IEventSource",
    "ISubscription",
    "CallbackObserver",
    "HubStreamError",
    "ConfigurationError",
    "EventHubError",
    "PartitionNotFoundError",
    "PublisherClosedError",
]
