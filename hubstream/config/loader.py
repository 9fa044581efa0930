"""Configuration loader for hubstream."""

import os
from datetime import timedelta
from pathlib import Path

import yaml

from ..core.exceptions import ConfigurationError
from .models import (
    HubStreamConfig,
    HubStreamConfigModel,
    ListenerConfig,
    PublisherConfig,
)

# Environment variable that overrides eventhub.connectionString
CONNECTION_STRING_ENV = "HUBSTREAM_CONNECTION_STRING"


class ConfigLoader:
    """Load and parse configuration files."""

    def __init__(self, config_dir: Path = Path("config")) -> None:
        self.config_dir = config_dir
        if not self.config_dir.exists():
            raise ConfigurationError(f"Configuration directory '{config_dir}' does not exist")

    def load(self, filename: str = "hubstream.yaml") -> HubStreamConfig:
        """Load listener and publisher configuration from a YAML file."""
        config_path = self.config_dir / filename
        if not config_path.exists():
            raise ConfigurationError(f"Config file '{config_path}' does not exist")

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}

            model = HubStreamConfigModel(**data)
            return self._resolve(model)
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Failed to load config: {e}") from e

    def _resolve(self, model: HubStreamConfigModel) -> HubStreamConfig:
        """Merge the shared eventhub section into each listener and the publisher."""
        connection_string = os.getenv(CONNECTION_STRING_ENV)
        if not connection_string and model.eventhub.connection_string:
            connection_string = model.eventhub.connection_string.get_secret_value()
        if not connection_string:
            raise ConfigurationError(
                f"No connection string: set eventhub.connectionString or {CONNECTION_STRING_ENV}"
            )

        listeners = [
            ListenerConfig(
                entity_path=section.entity_path or model.eventhub.entity_path,
                connection_string=connection_string,
                consumer_group=section.consumer_group,
                partition_id=section.partition_id,
                polling_period=timedelta(seconds=section.polling_period_seconds),
                batch_size=section.batch_size,
                starting_position=section.starting_position,
                receive_timeout=section.receive_timeout,
            )
            for section in model.listeners
        ]

        publisher = None
        if model.publisher is not None:
            publisher_connection = connection_string
            if model.publisher.connection_string:
                publisher_connection = model.publisher.connection_string.get_secret_value()
            publisher = PublisherConfig(
                connection_string=publisher_connection,
                entity_path=model.publisher.entity_path or model.eventhub.entity_path,
            )

        return HubStreamConfig(listeners=listeners, publisher=publisher)
