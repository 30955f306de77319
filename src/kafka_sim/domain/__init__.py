"""Kafka simulator domain layer."""

from kafka_sim.domain.entities.broker import Broker
from kafka_sim.domain.entities.consumer import Consumer, PollBatch
from kafka_sim.domain.entities.events import EventLog, RebalanceEvent, SimulationEvent
from kafka_sim.domain.entities.message import Message
from kafka_sim.domain.entities.partition import Partition
from kafka_sim.domain.entities.topic import RoundRobinCounter, Topic, key_hash
from kafka_sim.domain.services.assignors import (
    RangeAssignor,
    RoundRobinAssignor,
    StickyAssignor,
    get_assignor,
)
from kafka_sim.domain.services.cluster import Cluster, LeaderElection
from kafka_sim.domain.services.consumer_group import ConsumerGroup
from kafka_sim.domain.services.group_coordinator import GroupCoordinator
from kafka_sim.domain.services.producer import Producer, ProduceResult
from kafka_sim.domain.services.replication_manager import ReplicationManager
from kafka_sim.domain.value_objects.identifiers import (
    NO_BROKER,
    BrokerId,
    ConsumerId,
    GroupId,
    Offset,
    PartitionId,
    TopicName,
    TopicPartition,
    partition_key,
)
from kafka_sim.domain.value_objects.simulation_types import (
    Acks,
    AssignorStrategy,
    CommandStatus,
    ConsumerStatus,
    OffsetReset,
    RebalanceReason,
)

__all__ = [
    # Value objects
    "NO_BROKER",
    "BrokerId",
    "ConsumerId",
    "GroupId",
    "Offset",
    "PartitionId",
    "TopicName",
    "TopicPartition",
    "partition_key",
    "Acks",
    "AssignorStrategy",
    "CommandStatus",
    "ConsumerStatus",
    "OffsetReset",
    "RebalanceReason",
    # Entities
    "Broker",
    "Consumer",
    "PollBatch",
    "EventLog",
    "RebalanceEvent",
    "SimulationEvent",
    "Message",
    "Partition",
    "RoundRobinCounter",
    "Topic",
    "key_hash",
    # Services
    "RangeAssignor",
    "RoundRobinAssignor",
    "StickyAssignor",
    "get_assignor",
    "Cluster",
    "LeaderElection",
    "ConsumerGroup",
    "GroupCoordinator",
    "Producer",
    "ProduceResult",
    "ReplicationManager",
]
