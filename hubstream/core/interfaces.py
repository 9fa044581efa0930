"""Abstract interfaces for push sources and sinks."""

from abc import ABC, abstractmethod
from types import TracebackType
from typing import Any


class IEventObserver(ABC):
    """Abstract interface for consumers of a push stream."""

    @abstractmethod
    async def on_next(self, event: Any) -> None:
        """Receive the next event."""
        pass

    @abstractmethod
    async def on_error(self, error: Exception) -> None:
        """Receive the terminal error of the stream."""
        pass

    @abstractmethod
    async def on_completed(self) -> None:
        """Receive the terminal completion of the stream."""
        pass


class ISubscription(ABC):
    """Handle returned by a source; disposing it detaches the observer."""

    @abstractmethod
    async def dispose(self) -> None:
        """Detach the observer from its source."""
        pass

    async def __aenter__(self) -> "ISubscription":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.dispose()


class IEventSource(ABC):
    """Abstract interface for producers of a push stream."""

    @abstractmethod
    async def subscribe(self, observer: IEventObserver) -> ISubscription:
        """Attach an observer and return its subscription."""
        pass
