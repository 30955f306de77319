"""Topic entity and message routing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from kafka_sim.domain.entities.broker import Broker
from kafka_sim.domain.entities.message import Message
from kafka_sim.domain.entities.partition import DEFAULT_LOG_RETENTION, Partition


def key_hash(key: str) -> int:
    """Stable hash of a message key (sum of code points).

    Python's builtin ``hash`` is salted per process, so it cannot give the
    same partition for a key across runs.
    """
    return sum(ord(c) for c in key)


@dataclass
class RoundRobinCounter:
    """Cursor for keyless round-robin routing, owned by a producer."""
    value: int = 0

    def advance(self) -> int:
        current = self.value
        self.value += 1
        return current


class Topic:
    """Named collection of partitions.

    Partition count is fixed at creation; there is no live repartitioning.
    """

    def __init__(
        self,
        name: str,
        num_partitions: int = 1,
        replication_factor: int = 1,
        brokers: Sequence[Broker] = (),
        retention: int = DEFAULT_LOG_RETENTION,
    ):
        """Initialize topic and place its partitions.

        Args:
            name: Topic name (unique within a cluster).
            num_partitions: Number of partitions.
            replication_factor: Desired replicas per partition.
            brokers: Alive brokers to place partitions on.
            retention: Messages kept in memory per partition.
        """
        self.name = name
        self.num_partitions = num_partitions
        self.replication_factor = replication_factor
        self.partitions: list[Partition] = self._create_partitions(brokers, retention)
        self._round_robin = RoundRobinCounter()

    def _create_partitions(self, brokers: Sequence[Broker], retention: int) -> list[Partition]:
        partitions = []
        broker_count = len(brokers)
        for i in range(self.num_partitions):
            if broker_count == 0:
                # Degenerate placement: no brokers to spread over
                partitions.append(Partition(i, self.name, leader_id=0, replica_ids=[0], retention=retention))
                continue
            leader_id = brokers[i % broker_count].id
            replica_ids = [
                brokers[(i + j) % broker_count].id
                for j in range(min(self.replication_factor, broker_count))
            ]
            partitions.append(Partition(i, self.name, leader_id, replica_ids, retention=retention))
        return partitions

    def route_message(
        self,
        message: Message,
        counter: Optional[RoundRobinCounter] = None,
    ) -> int:
        """Pick the partition index for a message.

        Keyed messages go to ``hash(key) % partitions``; keyless ones rotate
        through the partitions using ``counter`` (or the topic's own cursor).

        Args:
            message: Message to route.
            counter: Round-robin cursor of the sending producer.

        Returns:
            Partition index.
        """
        if not self.partitions:
            return -1
        if message.has_key:
            return key_hash(message.key) % len(self.partitions)
        cursor = counter if counter is not None else self._round_robin
        return cursor.advance() % len(self.partitions)

    def get_partition(self, partition_id: int) -> Optional[Partition]:
        for partition in self.partitions:
            if partition.id == partition_id:
                return partition
        return None

    @property
    def total_messages(self) -> int:
        """Messages ever appended (not just the retained window)."""
        return sum(p.next_offset for p in self.partitions)

    @property
    def under_replicated_partitions(self) -> list[Partition]:
        return [p for p in self.partitions if p.is_under_replicated(self.replication_factor)]

    def __repr__(self) -> str:
        return (
            f"Topic(name={self.name}, partitions={self.num_partitions}, "
            f"rf={self.replication_factor})"
        )
