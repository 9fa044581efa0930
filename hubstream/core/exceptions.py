"""Custom exceptions for hubstream."""


class HubStreamError(Exception):
    """Base exception for hubstream errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(HubStreamError):
    """Raised when there's a configuration error."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Configuration error: {message}")


class EventHubError(HubStreamError):
    """Raised when there's an Azure Event Hubs error."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(f"Event Hub error: {message}")
        self.original_error = original_error


class PartitionNotFoundError(HubStreamError):
    """Raised when the configured partition is not reported by the broker."""

    def __init__(self, partition_id: str, available: set[str] | None = None) -> None:
        super().__init__(f"Provided partition ID ({partition_id}) does not exist on server")
        self.partition_id = partition_id
        self.available = available or set()


class PublisherClosedError(HubStreamError):
    """Raised when sending through a publisher that was already disposed."""

    def __init__(self, entity_path: str) -> None:
        super().__init__(f"Publisher for '{entity_path}' is closed")
        self.entity_path = entity_path
