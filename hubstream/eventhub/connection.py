"""Connection lifecycle management for Event Hub listeners."""

from functools import partial

import structlog

from ..config.models import DEFAULT_CONSUMER_GROUP
from .client import connect
from .models import ConnectionFactory, IEventHubConnection, IPartitionReceiver, StreamSession

logger = structlog.get_logger(__name__)


class ConnectionManager:
    """Opens connections and closes them exactly once, never raising on close."""

    def __init__(
        self,
        connection_factory: ConnectionFactory | None = None,
        receive_timeout: float = 5.0,
    ) -> None:
        """Initialize the connection manager.

        Args:
            connection_factory: Builds a connection from (connection string,
                entity path, consumer group). Defaults to the Azure client.
            receive_timeout: Seconds the default Azure receiver waits for
                events before reporting an empty batch
        """
        self._factory = connection_factory or partial(connect, receive_timeout=receive_timeout)

    async def open(
        self,
        connection_string: str,
        entity_path: str,
        consumer_group: str = DEFAULT_CONSUMER_GROUP,
    ) -> IEventHubConnection:
        """Open a connection scoped to one entity path."""
        connection = self._factory(connection_string, entity_path, consumer_group)
        logger.info("Event Hub connection opened", entity_path=entity_path)
        return connection

    async def close(self, connection: IEventHubConnection | None) -> None:
        """Close a connection, discarding any failure."""
        if connection is None:
            return
        try:
            await connection.close()
            logger.debug("Event Hub connection closed", entity_path=connection.entity_path)
        except Exception as e:
            logger.warning("Ignoring error closing connection", entity_path=connection.entity_path, error=str(e))

    async def close_receiver(self, receiver: IPartitionReceiver | None) -> None:
        """Close a partition receiver, discarding any failure."""
        if receiver is None:
            return
        try:
            await receiver.close()
            logger.debug("Partition receiver closed", partition_id=receiver.partition_id)
        except Exception as e:
            logger.warning("Ignoring error closing receiver", partition_id=receiver.partition_id, error=str(e))

    async def close_session(self, session: StreamSession) -> bool:
        """Release the session's receiver, then its connection.

        Returns:
            True if this call performed the teardown, False if it already happened
        """
        if session.closed:
            return False
        session.closed = True

        await self.close_receiver(session.receiver)
        await self.close(session.connection)
        return True
