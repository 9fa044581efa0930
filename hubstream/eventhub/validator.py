"""Partition validation."""

import structlog

from ..core.exceptions import PartitionNotFoundError
from .models import IEventHubConnection

logger = structlog.get_logger(__name__)


class PartitionValidator:
    """Confirms a partition exists before a receiver is created for it."""

    async def validate(self, connection: IEventHubConnection, partition_id: str) -> set[str]:
        """Check partition_id against the broker's live partition set.

        Args:
            connection: Open connection to the entity
            partition_id: Partition the listener is configured for

        Returns:
            The partition ids reported by the broker

        Raises:
            PartitionNotFoundError: If partition_id is not among them
        """
        partition_ids = set(await connection.get_partition_ids())

        if partition_id not in partition_ids:
            logger.error(
                "Partition not found",
                entity_path=connection.entity_path,
                partition_id=partition_id,
                available=sorted(partition_ids),
            )
            raise PartitionNotFoundError(partition_id, partition_ids)

        logger.debug("Partition validated", entity_path=connection.entity_path, partition_id=partition_id)
        return partition_ids
