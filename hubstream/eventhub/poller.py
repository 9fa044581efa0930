"""Batch receive loop for one partition."""

import asyncio
from datetime import timedelta
from enum import Enum

import structlog

from .connection import ConnectionManager
from .models import Emitter, ListenerStats, StreamSession

logger = structlog.get_logger(__name__)


class PollerState(Enum):
    """State of a batch poller."""
    IDLE = "idle"
    RECEIVING = "receiving"
    WAITING = "waiting"
    CLOSING = "closing"


class BatchPoller:
    """Drains a partition batch by batch and backs off for a fixed period when idle.

    Busy partitions are received from back to back; after an empty batch the
    poller waits `polling_period` before asking again. The wait ends early when
    the session's cancel event is set. An in-flight receive is never aborted:
    cancellation is checked again once it returns, and a batch that arrives
    after cancellation is dropped.
    """

    def __init__(
        self,
        connection_manager: ConnectionManager,
        batch_size: int,
        polling_period: timedelta,
        stats: ListenerStats | None = None,
    ) -> None:
        self._connections = connection_manager
        self.batch_size = batch_size
        self.polling_period = polling_period
        self.stats = stats or ListenerStats()
        self.state = PollerState.IDLE

    async def run(self, session: StreamSession, emit: Emitter) -> None:
        """Run until the session is cancelled or a receive fails, then release the session."""
        if session.receiver is None:
            raise ValueError("Session has no partition receiver")

        receiver = session.receiver
        self.state = PollerState.IDLE
        logger.info(
            "Batch poller started",
            partition_id=receiver.partition_id,
            consumer_group=receiver.consumer_group,
            batch_size=self.batch_size,
        )

        try:
            while not session.cancelled:
                self.state = PollerState.RECEIVING
                events = await receiver.receive(self.batch_size)
                self.stats.record_batch(len(events))

                if session.cancelled:
                    break

                if events:
                    for event in events:
                        await emit(event)
                        self.stats.record_event_delivered()
                    continue

                self.state = PollerState.WAITING
                if await self._wait(session.cancel_event):
                    break
        finally:
            self.state = PollerState.CLOSING
            await self._connections.close_session(session)
            logger.info("Batch poller stopped", partition_id=receiver.partition_id)

    async def _wait(self, cancel_event: asyncio.Event) -> bool:
        """Wait out the polling period; returns True if cancelled meanwhile."""
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=self.polling_period.total_seconds())
            return True
        except asyncio.TimeoutError:
            return False
