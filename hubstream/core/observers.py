"""Observer helpers."""

from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from .interfaces import IEventObserver

logger = structlog.get_logger(__name__)

# Type aliases for observer callbacks
EventHandler = Callable[[Any], Awaitable[None]]
ErrorHandler = Callable[[Exception], Awaitable[None]]
CompletedHandler = Callable[[], Awaitable[None]]


class CallbackObserver(IEventObserver):
    """Observer built from plain coroutine functions.

    Missing error handlers log the error instead of dropping it silently.
    """

    def __init__(
        self,
        on_next: EventHandler,
        on_error: ErrorHandler | None = None,
        on_completed: CompletedHandler | None = None,
    ) -> None:
        self._on_next = on_next
        self._on_error = on_error
        self._on_completed = on_completed

    async def on_next(self, event: Any) -> None:
        await self._on_next(event)

    async def on_error(self, error: Exception) -> None:
        if self._on_error is None:
            logger.error("Unhandled stream error", error=str(error))
            return
        await self._on_error(error)

    async def on_completed(self) -> None:
        if self._on_completed is not None:
            await self._on_completed()
