"""Value objects for the Kafka simulator domain."""

from kafka_sim.domain.value_objects.identifiers import (
    NO_BROKER,
    BrokerId,
    ConsumerId,
    GroupId,
    Offset,
    PartitionId,
    ProducerId,
    TopicName,
    TopicPartition,
    create_consumer_id,
    create_group_id,
    create_message_id,
    create_producer_id,
    partition_key,
)
from kafka_sim.domain.value_objects.simulation_types import (
    Acks,
    AssignorStrategy,
    CommandStatus,
    CompressionType,
    ConsumerStatus,
    DeliverySemantics,
    GroupState,
    OffsetReset,
    RebalanceReason,
)

__all__ = [
    "NO_BROKER",
    "BrokerId",
    "ConsumerId",
    "GroupId",
    "Offset",
    "PartitionId",
    "ProducerId",
    "TopicName",
    "TopicPartition",
    "create_consumer_id",
    "create_group_id",
    "create_message_id",
    "create_producer_id",
    "partition_key",
    "Acks",
    "AssignorStrategy",
    "CommandStatus",
    "CompressionType",
    "ConsumerStatus",
    "DeliverySemantics",
    "GroupState",
    "OffsetReset",
    "RebalanceReason",
]
