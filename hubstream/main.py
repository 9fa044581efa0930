"""Command line runner: tails configured partitions and optionally forwards them."""

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any

import structlog

from .config import ConfigLoader, HubStreamConfig
from .core.interfaces import IEventObserver
from .eventhub import ConnectionManager, EventHubListener, EventHubPublisher, Subscription
from .eventhub.client import describe_event
from .eventhub.publisher import ProducerFactory

logger = structlog.get_logger()


def configure_logging(level: str = "INFO") -> None:
    """Configure stdlib logging and the structlog JSON pipeline."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stdout
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # The AMQP stack is chatty at INFO
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("uamqp").setLevel(logging.WARNING)


def get_config_file_path(argv: list[str]) -> tuple[str, str]:
    """
    Get configuration file path and filename from command line arguments.

    Returns:
        tuple: (config_directory, config_filename)
    """
    config_path = None

    for arg in argv:
        if arg.endswith('.yaml') or arg.endswith('.yml'):
            config_path = arg
            break

    if not config_path:
        config_path = os.getenv('CONFIG_PATH')

    if config_path:
        config_file_path = Path(config_path)
        if config_file_path.parent == Path('.'):
            config_dir = 'config'
        else:
            config_dir = str(config_file_path.parent)
        return config_dir, config_file_path.name
    else:
        return 'config', 'hubstream.yaml'


class LoggingObserver(IEventObserver):
    """Logs every event of one partition."""

    def __init__(self, source: str, done: asyncio.Event) -> None:
        self.source = source
        self._done = done

    async def on_next(self, event: Any) -> None:
        body = event.body_as_str() if hasattr(event, "body_as_str") else str(event)
        logger.info("Event received", source=self.source, body=body, **describe_event(event))

    async def on_error(self, error: Exception) -> None:
        logger.error("Stream failed", source=self.source, error=str(error))
        self._done.set()

    async def on_completed(self) -> None:
        logger.info("Stream completed", source=self.source)
        self._done.set()


class ForwardingObserver(IEventObserver):
    """Forwards one partition's events to a publisher shared by all partitions.

    Stream termination is only logged; the runner owns the publisher and
    disposes it once on shutdown.
    """

    def __init__(self, source: str, publisher: EventHubPublisher) -> None:
        self.source = source
        self._publisher = publisher

    async def on_next(self, event: Any) -> None:
        await self._publisher.on_next(event)

    async def on_error(self, error: Exception) -> None:
        logger.warning("Forwarding stopped", source=self.source, error=str(error))

    async def on_completed(self) -> None:
        logger.info("Forwarding completed", source=self.source)


async def run(
    config: HubStreamConfig,
    connection_manager: ConnectionManager | None = None,
    producer_factory: ProducerFactory | None = None,
) -> None:
    """Subscribe to every configured partition until cancelled or all streams end."""
    if not config.listeners:
        logger.warning("No listeners configured")
        return

    publisher = None
    if config.publisher:
        publisher = EventHubPublisher.from_config(config.publisher, producer_factory=producer_factory)
    listeners = [
        EventHubListener.from_config(listener_config, connection_manager=connection_manager)
        for listener_config in config.listeners
    ]
    subscriptions: list[Subscription] = []
    done_events: list[asyncio.Event] = []

    try:
        for listener in listeners:
            source = f"{listener.config.entity_path}/{listener.config.partition_id}"
            done = asyncio.Event()
            done_events.append(done)
            subscriptions.append(await listener.subscribe(LoggingObserver(source, done)))
            if publisher is not None:
                subscriptions.append(await listener.subscribe(ForwardingObserver(source, publisher)))
            logger.info("Listening", source=source, consumer_group=listener.config.consumer_group)

        await asyncio.gather(*(done.wait() for done in done_events))
    finally:
        for subscription in subscriptions:
            await subscription.dispose()
        if publisher is not None:
            publisher.dispose()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    config_dir, config_filename = get_config_file_path(sys.argv[1:] if argv is None else argv)
    config = ConfigLoader(Path(config_dir)).load(config_filename)
    logger.info("Configuration loaded", config_file=f"{config_dir}/{config_filename}",
                listeners=len(config.listeners))

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
