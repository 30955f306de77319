"""Domain services for the Kafka simulator."""

from kafka_sim.domain.services.assignors import (
    Assignment,
    PartitionAssignor,
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

__all__ = [
    "Assignment",
    "PartitionAssignor",
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
