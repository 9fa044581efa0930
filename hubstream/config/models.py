"""Configuration models using Pydantic."""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationInfo, field_validator

# Consumer group every Event Hub is created with
DEFAULT_CONSUMER_GROUP = "$Default"

# Receive new events only ("@latest"); "-1" reads from the start of the partition
DEFAULT_STARTING_POSITION = "@latest"

DEFAULT_POLLING_PERIOD = timedelta(seconds=30)
DEFAULT_BATCH_SIZE = 10


def _require_text(value: Any, field_name: str) -> Any:
    if isinstance(value, SecretStr):
        text = value.get_secret_value()
    else:
        text = value
    if isinstance(text, str) and not text.strip():
        raise ValueError(f"{field_name} must not be blank")
    return value


class ListenerConfig(BaseModel):
    """Immutable settings of one partition listener."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    entity_path: str = Field(..., alias="entityPath", description="Event Hub name")
    connection_string: SecretStr = Field(..., alias="connectionString")
    consumer_group: str = Field(DEFAULT_CONSUMER_GROUP, alias="consumerGroup")
    partition_id: str = Field(..., alias="partitionId")
    polling_period: timedelta = Field(
        DEFAULT_POLLING_PERIOD,
        alias="pollingPeriodSeconds",
        description="Wait before polling again after an empty batch",
    )
    batch_size: int = Field(DEFAULT_BATCH_SIZE, alias="batchSize", ge=1)
    starting_position: str = Field(DEFAULT_STARTING_POSITION, alias="startingPosition")
    receive_timeout: float = Field(
        5.0,
        alias="receiveTimeout",
        gt=0,
        description="Seconds the broker waits for events before returning an empty batch",
    )

    @field_validator("consumer_group", mode="before")
    @classmethod
    def _default_consumer_group(cls, value: Any) -> Any:
        return value or DEFAULT_CONSUMER_GROUP

    @field_validator("partition_id", mode="before")
    @classmethod
    def _partition_id_as_text(cls, value: Any) -> Any:
        # YAML reads unquoted partition ids as integers
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("polling_period")
    @classmethod
    def _non_negative_period(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("polling_period must not be negative")
        return value


class PublisherConfig(BaseModel):
    """Settings of an Event Hub publisher."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    connection_string: SecretStr = Field(..., alias="connectionString")
    entity_path: str = Field(..., alias="entityPath")

    @field_validator("connection_string", "entity_path", mode="before")
    @classmethod
    def _not_blank(cls, value: Any, info: ValidationInfo) -> Any:
        return _require_text(value, info.field_name)


class EventHubSection(BaseModel):
    """Shared Event Hub connection settings from the config file."""
    model_config = ConfigDict(populate_by_name=True)

    connection_string: SecretStr | None = Field(None, alias="connectionString")
    entity_path: str = Field(..., alias="entityPath")


class ListenerSection(BaseModel):
    """One `listeners` entry from the config file."""
    model_config = ConfigDict(populate_by_name=True)

    partition_id: str | int = Field(..., alias="partitionId")
    entity_path: str | None = Field(None, alias="entityPath", description="Overrides eventhub.entityPath")
    consumer_group: str | None = Field(None, alias="consumerGroup")
    polling_period_seconds: float = Field(30, alias="pollingPeriodSeconds")
    batch_size: int = Field(DEFAULT_BATCH_SIZE, alias="batchSize")
    starting_position: str = Field(DEFAULT_STARTING_POSITION, alias="startingPosition")
    receive_timeout: float = Field(5.0, alias="receiveTimeout")


class PublisherSection(BaseModel):
    """The `publisher` section from the config file."""
    model_config = ConfigDict(populate_by_name=True)

    entity_path: str | None = Field(None, alias="entityPath", description="Overrides eventhub.entityPath")
    connection_string: SecretStr | None = Field(None, alias="connectionString")


class HubStreamConfigModel(BaseModel):
    """Complete configuration file."""
    model_config = ConfigDict(populate_by_name=True)

    eventhub: EventHubSection
    listeners: list[ListenerSection] = Field(default_factory=list)
    publisher: PublisherSection | None = None


@dataclass
class HubStreamConfig:
    """Resolved configuration: one ListenerConfig per configured partition."""
    listeners: list[ListenerConfig] = field(default_factory=list)
    publisher: PublisherConfig | None = None
