"""Consumer group service: membership and rebalance protocol."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Union
import logging

from kafka_sim.domain.entities.consumer import Consumer, PartitionMap, PollBatch
from kafka_sim.domain.entities.events import EventLog, RebalanceEvent
from kafka_sim.domain.entities.topic import Topic
from kafka_sim.domain.services.assignors import Assignment, get_assignor
from kafka_sim.domain.value_objects.identifiers import TopicPartition, create_group_id
from kafka_sim.domain.value_objects.simulation_types import (
    AssignorStrategy,
    GroupState,
    RebalanceReason,
)

logger = logging.getLogger(__name__)


class ConsumerGroup:
    """Consumers sharing a subscription with exclusive partition ownership.

    Every membership, subscription or strategy change recomputes the whole
    assignment synchronously. The new table is built aside and swapped in
    at once, so no partial assignment is ever visible; ``is_rebalancing``
    is only true while that computation runs.
    """

    def __init__(
        self,
        group_id: Optional[str] = None,
        topic_names: Iterable[str] = (),
        assignor_strategy: Union[AssignorStrategy, str] = AssignorStrategy.RANGE,
        rebalance_log_size: int = 20,
        consumer_defaults: Optional[Mapping[str, Any]] = None,
    ):
        """Initialize consumer group.

        Args:
            group_id: Group ID (random if omitted).
            topic_names: Subscribed topics.
            assignor_strategy: Assignment strategy.
            rebalance_log_size: Number of rebalance events kept.
            consumer_defaults: Keyword arguments for new ``Consumer`` members.
        """
        self.id = group_id or create_group_id()
        self.topic_names: list[str] = list(dict.fromkeys(topic_names))
        self.assignor_strategy = AssignorStrategy(assignor_strategy)
        self.consumer_defaults = dict(consumer_defaults or {})
        self.consumers: list[Consumer] = []
        self.assignment: Assignment = {}
        self.previous_assignment: Assignment = {}
        self.is_rebalancing = False
        self.rebalance_count = 0
        self.rebalance_events: EventLog[RebalanceEvent] = EventLog(rebalance_log_size)

    @property
    def state(self) -> GroupState:
        return GroupState.REBALANCING if self.is_rebalancing else GroupState.STABLE

    @property
    def generation(self) -> int:
        return self.rebalance_count

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def get_consumer(self, consumer_id: str) -> Optional[Consumer]:
        for consumer in self.consumers:
            if consumer.id == consumer_id:
                return consumer
        return None

    def add_consumer(
        self,
        topics: Iterable[Topic],
        partition_map: Optional[PartitionMap] = None,
        consumer_id: Optional[str] = None,
    ) -> Consumer:
        """Add a new consumer; always triggers a rebalance.

        Args:
            topics: All cluster topics.
            partition_map: ``"topic:partition"`` -> Partition lookup.
            consumer_id: Consumer ID (random if omitted).

        Returns:
            The joined consumer.
        """
        consumer = Consumer(group_id=self.id, consumer_id=consumer_id, **self.consumer_defaults)
        self.consumers.append(consumer)
        self.rebalance(topics, partition_map, RebalanceReason.CONSUMER_JOINED)
        return consumer

    def remove_consumer(
        self,
        consumer_id: str,
        topics: Iterable[Topic],
        partition_map: Optional[PartitionMap] = None,
        reason: RebalanceReason = RebalanceReason.CONSUMER_LEFT,
    ) -> bool:
        """Remove a consumer (leave or crash) and rebalance.

        Returns:
            True if the consumer was a member; unknown ids are a no-op.
        """
        consumer = self.get_consumer(consumer_id)
        if consumer is None:
            return False
        self.consumers.remove(consumer)
        self.rebalance(topics, partition_map, reason)
        return True

    def crash_consumer(
        self,
        consumer_id: str,
        topics: Iterable[Topic],
        partition_map: Optional[PartitionMap] = None,
    ) -> bool:
        """Crash a consumer; the session timeout is treated as instant.

        Returns:
            True if the consumer was a member.
        """
        consumer = self.get_consumer(consumer_id)
        if consumer is None:
            return False
        consumer.crash()
        return self.remove_consumer(
            consumer_id, topics, partition_map, RebalanceReason.CONSUMER_CRASHED,
        )

    def subscribe(self, topic_name: str) -> bool:
        """Add a topic to the subscription (no rebalance by itself).

        Returns:
            True if the subscription changed.
        """
        if topic_name in self.topic_names:
            return False
        self.topic_names.append(topic_name)
        return True

    def set_strategy(
        self,
        strategy: Union[AssignorStrategy, str],
        topics: Iterable[Topic],
        partition_map: Optional[PartitionMap] = None,
    ) -> None:
        """Switch assignor and rebalance with it."""
        self.assignor_strategy = AssignorStrategy(strategy)
        self.rebalance(topics, partition_map, RebalanceReason.STRATEGY_CHANGED)

    # ------------------------------------------------------------------
    # Rebalance
    # ------------------------------------------------------------------

    def rebalance(
        self,
        topics: Iterable[Topic],
        partition_map: Optional[PartitionMap] = None,
        reason: RebalanceReason = RebalanceReason.TOPOLOGY_CHANGED,
    ) -> Assignment:
        """Stop the world, recompute the assignment and resume.

        Args:
            topics: All cluster topics; only subscribed ones are assigned.
            partition_map: ``"topic:partition"`` -> Partition lookup.
            reason: What triggered the rebalance.

        Returns:
            The new assignment.
        """
        self.is_rebalancing = True
        try:
            self.rebalance_count += 1
            partitions = [
                TopicPartition(topic.name, p.id)
                for topic in topics
                if topic.name in self.topic_names
                for p in topic.partitions
            ]
            alive = [c for c in self.consumers if c.is_alive]
            assignor = get_assignor(self.assignor_strategy)
            new_assignment = assignor.assign(
                partitions, [c.id for c in alive], self.previous_assignment,
            )

            self.previous_assignment = new_assignment
            self.assignment = new_assignment
            for consumer in alive:
                consumer.assign_partitions(new_assignment.get(consumer.id, []), partition_map)

            self.rebalance_events.record(RebalanceEvent(
                consumer_count=len(alive),
                partition_count=len(partitions),
                strategy=self.assignor_strategy.value,
                reason=reason.value,
                generation=self.rebalance_count,
            ))
            logger.debug(
                "Group %s rebalanced (%s): %d partitions over %d consumers",
                self.id, reason.value, len(partitions), len(alive),
            )
        finally:
            self.is_rebalancing = False
        return self.assignment

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_ownership_map(self) -> dict[str, str]:
        """Flatten the assignment into ``"topic:partition"`` -> consumer id."""
        ownership = {}
        for consumer_id, owned in self.assignment.items():
            for tp in owned:
                ownership[tp.key] = consumer_id
        return ownership

    @property
    def idle_consumers(self) -> list[Consumer]:
        """Alive consumers holding no partition (standby capacity)."""
        return [c for c in self.consumers if c.is_alive and not self.assignment.get(c.id)]

    @property
    def active_consumers(self) -> list[Consumer]:
        return [c for c in self.consumers if c.is_alive and self.assignment.get(c.id)]

    def get_lag_report(self, partition_map: Optional[PartitionMap] = None) -> list[dict]:
        """Per-consumer broker lag over the assigned partitions.

        Returns:
            List of ``{consumer_id, total_lag, partitions}``.
        """
        partition_map = partition_map or {}
        report = []
        for consumer in self.consumers:
            total = sum(
                consumer.get_lag(tp.topic, tp.partition_id, partition_map.get(tp.key))
                for tp in consumer.assigned_partitions
            )
            report.append({
                "consumer_id": consumer.id,
                "total_lag": total,
                "partitions": list(consumer.assigned_partitions),
            })
        return report

    def poll_all(self, partition_map: Optional[PartitionMap] = None) -> dict[str, list[PollBatch]]:
        """Run one poll on every alive consumer.

        Returns:
            Consumer id -> batches it received.
        """
        return {c.id: c.poll(partition_map) for c in self.consumers if c.is_alive}

    def commit_all(self) -> int:
        """Commit every alive consumer.

        Returns:
            Number of consumers that committed.
        """
        alive = [c for c in self.consumers if c.is_alive]
        for consumer in alive:
            consumer.commit()
        return len(alive)

    def size(self) -> int:
        return len(self.consumers)
