"""Group coordinator: registry of consumer groups."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Union
import logging

from kafka_sim.domain.entities.consumer import PartitionMap
from kafka_sim.domain.entities.topic import Topic
from kafka_sim.domain.services.consumer_group import ConsumerGroup
from kafka_sim.domain.value_objects.simulation_types import (
    AssignorStrategy,
    RebalanceReason,
)

logger = logging.getLogger(__name__)


class GroupCoordinator:
    """Registry of consumer groups and fan-out point for rebalances."""

    def __init__(
        self,
        rebalance_log_size: int = 20,
        consumer_defaults: Optional[Mapping[str, Any]] = None,
    ):
        """Initialize group coordinator.

        Args:
            rebalance_log_size: Rebalance events kept per group.
            consumer_defaults: Keyword arguments for consumers of new groups.
        """
        self.groups: dict[str, ConsumerGroup] = {}
        self._rebalance_log_size = rebalance_log_size
        self._consumer_defaults = dict(consumer_defaults or {})

    def create_group(
        self,
        group_id: str,
        topic_names: Iterable[str],
        assignor_strategy: Union[AssignorStrategy, str] = AssignorStrategy.RANGE,
    ) -> ConsumerGroup:
        """Create and register a group (replaces any group with that id).

        Args:
            group_id: Group ID.
            topic_names: Subscribed topics.
            assignor_strategy: Assignment strategy.

        Returns:
            Created group.
        """
        group = ConsumerGroup(
            group_id=group_id,
            topic_names=topic_names,
            assignor_strategy=assignor_strategy,
            rebalance_log_size=self._rebalance_log_size,
            consumer_defaults=self._consumer_defaults,
        )
        self.groups[group.id] = group
        logger.info("Consumer group %s created (%s)", group.id, group.assignor_strategy.value)
        return group

    def get_group(self, group_id: str) -> Optional[ConsumerGroup]:
        return self.groups.get(group_id)

    def remove_group(self, group_id: str) -> bool:
        """Drop a group; unknown ids are a no-op.

        Returns:
            True if the group existed.
        """
        return self.groups.pop(group_id, None) is not None

    def get_all_groups(self) -> list[ConsumerGroup]:
        return list(self.groups.values())

    def rebalance_all(
        self,
        topics: Iterable[Topic],
        partition_map: Optional[PartitionMap] = None,
        reason: RebalanceReason = RebalanceReason.TOPOLOGY_CHANGED,
    ) -> None:
        """Rebalance every group (cluster topology changed)."""
        topics = list(topics)
        for group in self.groups.values():
            group.rebalance(topics, partition_map, reason)

    @property
    def total_rebalances(self) -> int:
        return sum(g.rebalance_count for g in self.groups.values())
