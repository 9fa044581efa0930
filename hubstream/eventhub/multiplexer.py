"""Reference-counted sharing of one producer session across subscribers."""

import asyncio
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any

import structlog

from ..core.interfaces import IEventObserver, IEventSource, ISubscription
from .models import Emitter

logger = structlog.get_logger(__name__)

# Runs one session: emits events until the cancel event is set or it fails
Producer = Callable[[Emitter, asyncio.Event], Awaitable[None]]


class Subscription(ISubscription):
    """One observer's attachment to a StreamMultiplexer."""

    def __init__(self, multiplexer: "StreamMultiplexer", observer: IEventObserver) -> None:
        self._multiplexer = multiplexer
        self.observer = observer
        self.active = True

    async def dispose(self) -> None:
        """Detach the observer; the last detach tears the session down."""
        if not self.active:
            return
        await self._multiplexer._unsubscribe(self)


class StreamMultiplexer(IEventSource):
    """Turns a cold producer into a shared push stream.

    The producer runs in one background task per activation period: the
    period starts when the subscriber count goes from 0 to 1 and ends when it
    returns to 0. Subscribers arriving while the session is still starting
    join the same task. A failing producer ends the period and every attached
    subscriber receives the error once; the next subscribe starts afresh.
    """

    def __init__(self, producer: Producer, name: str = "") -> None:
        self._producer = producer
        self.name = name
        self._lock = asyncio.Lock()
        self._subscriptions: list[Subscription] = []
        self._session_task: asyncio.Task[None] | None = None
        self._cancel_event: asyncio.Event | None = None
        # Previous session, possibly still tearing down
        self._teardown: asyncio.Task[None] | None = None

    @property
    def subscriber_count(self) -> int:
        """Number of attached subscribers."""
        return len(self._subscriptions)

    @property
    def active(self) -> bool:
        """Check if a session is running or starting."""
        return self._session_task is not None

    async def subscribe(self, observer: IEventObserver) -> Subscription:
        """Attach an observer, starting the shared session if none is running."""
        if observer is None:
            raise ValueError("observer must not be None")

        subscription = Subscription(self, observer)
        async with self._lock:
            self._subscriptions.append(subscription)
            if self._session_task is None:
                cancel_event = asyncio.Event()
                self._cancel_event = cancel_event
                self._session_task = asyncio.create_task(
                    self._run_session(cancel_event, self._teardown)
                )
                logger.info("Shared session starting", stream=self.name)

        logger.debug("Subscriber attached", stream=self.name, subscribers=len(self._subscriptions))
        return subscription

    async def close(self) -> None:
        """Detach every subscriber, stop the session and complete the subscribers."""
        async with self._lock:
            subscriptions = self._detach_all()
            session_task = self._end_activation()

        if session_task is not None:
            await self._wait_for_teardown(session_task)

        for subscription in subscriptions:
            await self._notify(subscription.observer, None)

    async def _unsubscribe(self, subscription: Subscription) -> None:
        async with self._lock:
            if subscription not in self._subscriptions:
                return
            self._subscriptions.remove(subscription)
            subscription.active = False
            logger.debug("Subscriber detached", stream=self.name, subscribers=len(self._subscriptions))

            if self._subscriptions:
                return
            session_task = self._end_activation()

        if session_task is not None:
            await self._wait_for_teardown(session_task)

    def _detach_all(self) -> list[Subscription]:
        subscriptions = self._subscriptions
        self._subscriptions = []
        for subscription in subscriptions:
            subscription.active = False
        return subscriptions

    def _end_activation(self) -> asyncio.Task[None] | None:
        """Signal the running session to stop. Caller holds the lock."""
        session_task = self._session_task
        if session_task is None:
            return None

        if self._cancel_event is not None:
            self._cancel_event.set()
        self._session_task = None
        self._cancel_event = None
        self._teardown = session_task
        logger.info("Shared session stopping", stream=self.name)
        return session_task

    async def _wait_for_teardown(self, session_task: asyncio.Task[None]) -> None:
        # A subscriber may detach from inside on_next, i.e. on the session task itself
        if session_task is asyncio.current_task():
            return
        await asyncio.wait({session_task})

    async def _run_session(
        self,
        cancel_event: asyncio.Event,
        previous: asyncio.Task[None] | None,
    ) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})

        error: Exception | None = None
        try:
            await self._producer(partial(self._emit, cancel_event), cancel_event)
        except Exception as e:
            error = e

        async with self._lock:
            if self._session_task is asyncio.current_task():
                subscriptions = self._detach_all()
                self._session_task = None
                self._cancel_event = None
            else:
                subscriptions = []

        if error is not None and not subscriptions:
            logger.warning("Session failed after its subscribers left", stream=self.name, error=str(error))
        elif error is not None:
            logger.error("Shared session failed", stream=self.name, error=str(error), subscribers=len(subscriptions))

        for subscription in subscriptions:
            await self._notify(subscription.observer, error)

    async def _emit(self, cancel_event: asyncio.Event, event: Any) -> None:
        """Deliver one event to every subscriber attached to this activation."""
        if cancel_event.is_set():
            return
        for subscription in list(self._subscriptions):
            if subscription.active:
                await subscription.observer.on_next(event)

    async def _notify(self, observer: IEventObserver, error: Exception | None) -> None:
        """Send the terminal notification; observer failures are logged."""
        try:
            if error is None:
                await observer.on_completed()
            else:
                await observer.on_error(error)
        except Exception as e:
            logger.error("Observer failed handling terminal notification", stream=self.name, error=str(e))
