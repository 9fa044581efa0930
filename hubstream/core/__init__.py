"""Core module initialization."""

from .exceptions import (
    ConfigurationError,
    EventHubError,
    HubStreamError,
    PartitionNotFoundError,
    PublisherClosedError,
)
from .interfaces import IEventObserver, IEventSource, ISubscription
from .observers import CallbackObserver

__all__ = [
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
