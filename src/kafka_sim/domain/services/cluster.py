"""Cluster service: topology, partition placement and leader election."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional
import logging

from kafka_sim.domain.entities.broker import DEFAULT_BASE_PORT, Broker
from kafka_sim.domain.entities.partition import DEFAULT_LOG_RETENTION, Partition
from kafka_sim.domain.entities.topic import Topic
from kafka_sim.domain.value_objects.identifiers import NO_BROKER

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaderElection:
    """Outcome of one partition leader election."""
    topic: str
    partition_id: int
    previous_leader: int
    new_leader: int

    @property
    def went_offline(self) -> bool:
        return self.new_leader == NO_BROKER


class Cluster:
    """The whole simulated deployment: brokers plus topics.

    Elections are deterministic: the new leader is the first alive broker in
    the partition's ISR order. A partition with no alive ISR member goes
    offline (leader ``-1``) and stays offline until a broker restart
    triggers another election.
    """

    def __init__(
        self,
        broker_count: int = 3,
        base_port: int = DEFAULT_BASE_PORT,
        log_retention: int = DEFAULT_LOG_RETENTION,
    ):
        """Initialize cluster.

        Args:
            broker_count: Brokers created at startup (ids 0..n-1).
            base_port: Port of broker 0; broker ``i`` listens on base + i.
            log_retention: Messages kept in memory per partition.
        """
        self._base_port = base_port
        self._log_retention = log_retention
        self.brokers: list[Broker] = [self._new_broker(i) for i in range(broker_count)]
        self.topics: dict[str, Topic] = {}
        self.controller_id = 0 if self.brokers else NO_BROKER

    def _new_broker(self, broker_id: int) -> Broker:
        return Broker(id=broker_id, port=self._base_port + broker_id)

    # ------------------------------------------------------------------
    # Brokers
    # ------------------------------------------------------------------

    def add_broker(self) -> int:
        """Add a broker; it leads nothing until a new topic is placed.

        Returns:
            New broker id.
        """
        broker_id = len(self.brokers)
        self.brokers.append(self._new_broker(broker_id))
        if self.controller_id == NO_BROKER:
            self.controller_id = broker_id
        logger.info("Broker %d added", broker_id)
        return broker_id

    def remove_broker(self, broker_id: int) -> bool:
        """Decommission a broker: it is marked dead, never deleted.

        Returns:
            True if the broker exists.
        """
        broker = self.get_broker(broker_id)
        if broker is None:
            return False
        broker.kill()
        self.handle_broker_failure(broker_id)
        return True

    def get_broker(self, broker_id: int) -> Optional[Broker]:
        for broker in self.brokers:
            if broker.id == broker_id:
                return broker
        return None

    @property
    def alive_brokers(self) -> list[Broker]:
        return [b for b in self.brokers if b.is_alive]

    def is_broker_alive(self, broker_id: int) -> bool:
        broker = self.get_broker(broker_id)
        return broker is not None and broker.is_alive

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------

    def create_topic(self, name: str, num_partitions: int, replication_factor: int) -> Topic:
        """Create a topic placed round-robin over the alive brokers.

        Args:
            name: Topic name.
            num_partitions: Number of partitions.
            replication_factor: Replicas per partition (capped by broker count).

        Returns:
            Created topic.
        """
        topic = Topic(
            name=name,
            num_partitions=num_partitions,
            replication_factor=replication_factor,
            brokers=self.alive_brokers,
            retention=self._log_retention,
        )
        self.topics[name] = topic
        self._update_broker_partition_counts()
        logger.info(
            "Topic %s created with %d partitions (rf=%d)",
            name, num_partitions, replication_factor,
        )
        return topic

    def get_topic(self, name: str) -> Optional[Topic]:
        return self.topics.get(name)

    def iter_partitions(self) -> Iterator[tuple[Topic, Partition]]:
        for topic in self.topics.values():
            for partition in topic.partitions:
                yield topic, partition

    def partition_map(self) -> dict[str, Partition]:
        """Build the ``"topic:partition"`` -> Partition lookup."""
        return {partition.key: partition for _, partition in self.iter_partitions()}

    def offline_partitions(self) -> list[Partition]:
        return [p for _, p in self.iter_partitions() if p.is_offline]

    # ------------------------------------------------------------------
    # Elections
    # ------------------------------------------------------------------

    def elect_leader(self, partition: Partition) -> int:
        """Elect the first alive ISR member as leader.

        Args:
            partition: Partition needing a leader.

        Returns:
            New leader id, or -1 if the partition went offline.
        """
        for broker_id in partition.isr_ids:
            if self.is_broker_alive(broker_id):
                partition.leader_id = broker_id
                return broker_id
        partition.leader_id = NO_BROKER
        logger.warning(
            "Partition %s has no alive ISR member; going offline", partition.key,
        )
        return NO_BROKER

    def _elect(self, partition: Partition) -> LeaderElection:
        previous = partition.leader_id
        new_leader = self.elect_leader(partition)
        return LeaderElection(partition.topic_name, partition.id, previous, new_leader)

    def handle_broker_failure(self, broker_id: int) -> list[LeaderElection]:
        """Re-elect leaders and shrink ISRs after a broker died.

        Args:
            broker_id: Dead broker.

        Returns:
            Elections performed for partitions it led.
        """
        if self.controller_id == broker_id:
            successor = next((b for b in self.alive_brokers if b.id != broker_id), None)
            self.controller_id = successor.id if successor else NO_BROKER
            logger.info("Controller moved from %d to %d", broker_id, self.controller_id)

        elections = []
        for _, partition in self.iter_partitions():
            partition.remove_from_isr(broker_id)
            if partition.leader_id == broker_id:
                elections.append(self._elect(partition))
        self._update_broker_partition_counts()
        return elections

    def handle_broker_restart(self, broker_id: int) -> list[LeaderElection]:
        """Bring a restarted broker back into the topology.

        The broker rejoins every ISR it is a replica of immediately, and
        offline partitions get another election.

        Args:
            broker_id: Restarted broker.

        Returns:
            Elections performed for previously offline partitions.
        """
        if self.controller_id == NO_BROKER or not self.is_broker_alive(self.controller_id):
            self.controller_id = broker_id

        elections = []
        for _, partition in self.iter_partitions():
            partition.add_to_isr(broker_id)
            if partition.is_offline:
                elections.append(self._elect(partition))
        self._update_broker_partition_counts()
        return elections

    def _update_broker_partition_counts(self) -> None:
        counts: dict[int, int] = {}
        for _, partition in self.iter_partitions():
            counts[partition.leader_id] = counts.get(partition.leader_id, 0) + 1
        for broker in self.brokers:
            broker.partition_count = counts.get(broker.id, 0)

    def get_stats(self) -> dict:
        """Get cluster statistics.

        Returns:
            Dictionary with stats.
        """
        return {
            "brokers": len(self.brokers),
            "alive_brokers": len(self.alive_brokers),
            "controller_id": self.controller_id,
            "topics": len(self.topics),
            "partitions": sum(t.num_partitions for t in self.topics.values()),
            "offline_partitions": len(self.offline_partitions()),
        }
