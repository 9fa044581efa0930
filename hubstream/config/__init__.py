"""Configuration module initialization."""

from .loader import ConfigLoader
from .models import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CONSUMER_GROUP,
    DEFAULT_POLLING_PERIOD,
    HubStreamConfig,
    HubStreamConfigModel,
    ListenerConfig,
    PublisherConfig,
)

__all__ = [
    "ConfigLoader",
    "HubStreamConfig",
    "HubStreamConfigModel",
    "ListenerConfig",
    "PublisherConfig",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_CONSUMER_GROUP",
    "DEFAULT_POLLING_PERIOD",
]
