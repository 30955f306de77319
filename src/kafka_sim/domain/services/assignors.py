"""Partition assignment strategies.

Each assignor is a pure function of the subscribed partitions, the alive
consumer ids and (for sticky) the previous assignment. Every consumer gets
an entry in the result, possibly empty: consumers beyond the partition
count are left idle.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Mapping, Optional, Protocol, Sequence, Union

from kafka_sim.domain.value_objects.identifiers import TopicPartition
from kafka_sim.domain.value_objects.simulation_types import AssignorStrategy

Assignment = dict[str, list[TopicPartition]]


class PartitionAssignor(Protocol):
    """Protocol for partition assignment strategies."""

    strategy: AssignorStrategy

    @abstractmethod
    def assign(
        self,
        partitions: Sequence[TopicPartition],
        consumer_ids: Sequence[str],
        previous: Optional[Mapping[str, Sequence[TopicPartition]]] = None,
    ) -> Assignment:
        """Assign partitions to consumers.

        Args:
            partitions: Partitions of all subscribed topics, in topic order.
            consumer_ids: Alive consumers, in join order.
            previous: Assignment of the previous generation.

        Returns:
            Mapping of consumer id to its partitions.
        """
        ...


class RangeAssignor:
    """Contiguous ranges by proportional position.

    Partition ``i`` goes to consumer ``floor(i * C / P)``. When ``P`` is not
    a multiple of ``C`` the ranges differ by one at the boundaries.
    """

    strategy = AssignorStrategy.RANGE

    def assign(self, partitions, consumer_ids, previous=None) -> Assignment:
        result: Assignment = {cid: [] for cid in consumer_ids}
        if not consumer_ids:
            return result
        count = len(consumer_ids)
        for i, tp in enumerate(partitions):
            index = min((i * count) // len(partitions), count - 1)
            result[consumer_ids[index]].append(tp)
        return result


class RoundRobinAssignor:
    """Partition ``i`` goes to consumer ``i mod C``."""

    strategy = AssignorStrategy.ROUND_ROBIN

    def assign(self, partitions, consumer_ids, previous=None) -> Assignment:
        result: Assignment = {cid: [] for cid in consumer_ids}
        if not consumer_ids:
            return result
        for i, tp in enumerate(partitions):
            result[consumer_ids[i % len(consumer_ids)]].append(tp)
        return result


class StickyAssignor:
    """Keep partitions with their previous owner when it is still alive.

    Orphaned and new partitions go one at a time to the least-loaded
    consumer (first in join order on ties), which minimises movement across
    membership changes.
    """

    strategy = AssignorStrategy.STICKY

    def assign(self, partitions, consumer_ids, previous=None) -> Assignment:
        result: Assignment = {cid: [] for cid in consumer_ids}
        if not consumer_ids:
            return result

        previous_owner: dict[TopicPartition, str] = {}
        for cid, owned in (previous or {}).items():
            if cid not in result:
                continue
            for tp in owned:
                previous_owner.setdefault(tp, cid)

        orphans = []
        for tp in partitions:
            owner = previous_owner.get(tp)
            if owner is not None:
                result[owner].append(tp)
            else:
                orphans.append(tp)

        for tp in orphans:
            least_loaded = min(consumer_ids, key=lambda cid: len(result[cid]))
            result[least_loaded].append(tp)
        return result


_ASSIGNORS: dict[AssignorStrategy, PartitionAssignor] = {
    AssignorStrategy.RANGE: RangeAssignor(),
    AssignorStrategy.ROUND_ROBIN: RoundRobinAssignor(),
    AssignorStrategy.STICKY: StickyAssignor(),
}


def get_assignor(strategy: Union[AssignorStrategy, str]) -> PartitionAssignor:
    """Look up the assignor for a strategy.

    Raises:
        ValueError: If the strategy name is unknown.
    """
    return _ASSIGNORS[AssignorStrategy(strategy)]
