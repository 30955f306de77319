"""Consumer entity: pull-based poll loop with offset tracking."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence
import logging
import time

from kafka_sim.domain.entities.events import EventLog, SimulationEvent
from kafka_sim.domain.entities.message import Message
from kafka_sim.domain.entities.partition import Partition
from kafka_sim.domain.value_objects.identifiers import (
    TopicPartition,
    create_consumer_id,
    partition_key,
)
from kafka_sim.domain.value_objects.simulation_types import (
    ConsumerStatus,
    DeliverySemantics,
    OffsetReset,
)

logger = logging.getLogger(__name__)

PartitionMap = Mapping[str, Partition]


@dataclass(frozen=True)
class PollBatch:
    """Messages fetched from one partition in a single poll."""
    topic: str
    partition_id: int
    messages: tuple[Message, ...]

    def __len__(self) -> int:
        return len(self.messages)


class Consumer:
    """Group member that pulls messages from its assigned partitions.

    Offsets are tracked per ``"topic:partition"`` key in two tables:
    ``current_offsets`` is the read position, ``committed_offsets`` the
    durable position. The current position never trails the committed one.

    State machine:
        idle -> polling -> processing -> (committing ->) idle,
        crashed from anywhere via ``crash()``, left only via ``recover()``.
    """

    def __init__(
        self,
        group_id: str,
        consumer_id: Optional[str] = None,
        auto_offset_reset: OffsetReset = OffsetReset.LATEST,
        max_poll_records: int = 500,
        fetch_min_bytes: int = 1,
        max_poll_interval_ms: int = 300_000,
        enable_auto_commit: bool = True,
        auto_commit_interval_ms: int = 5000,
        delivery_semantics: DeliverySemantics = DeliverySemantics.AT_LEAST_ONCE,
        event_log_size: int = 30,
    ):
        """Initialize consumer.

        Args:
            group_id: Owning consumer group.
            consumer_id: Consumer ID (random if omitted).
            auto_offset_reset: Start position for partitions without an offset.
            max_poll_records: Cap on records returned by one poll.
            fetch_min_bytes: Accepted for display; not enforced.
            max_poll_interval_ms: Accepted for display; not enforced.
            enable_auto_commit: Commit right after every non-empty poll.
            auto_commit_interval_ms: Accepted for display; commits are not timed.
            delivery_semantics: Advertised delivery guarantee.
            event_log_size: Number of recent events kept.
        """
        self.id = consumer_id or create_consumer_id()
        self.group_id = group_id
        self.auto_offset_reset = OffsetReset(auto_offset_reset)
        self.max_poll_records = max_poll_records
        self.fetch_min_bytes = fetch_min_bytes
        self.max_poll_interval_ms = max_poll_interval_ms
        self.enable_auto_commit = enable_auto_commit
        self.auto_commit_interval_ms = auto_commit_interval_ms
        self.delivery_semantics = DeliverySemantics(delivery_semantics)

        self.assigned_partitions: list[TopicPartition] = []
        self.current_offsets: dict[str, int] = {}
        self.committed_offsets: dict[str, int] = {}
        self.is_alive = True
        self.is_paused = False
        self.status = ConsumerStatus.IDLE

        self.total_polled = 0
        self.total_committed = 0
        self.last_poll_time = time.time()
        self.events: EventLog[SimulationEvent] = EventLog(event_log_size)

    def assign_partitions(
        self,
        assignments: Sequence[TopicPartition],
        partition_map: Optional[PartitionMap] = None,
    ) -> None:
        """Install the partitions granted by the group's rebalance.

        Partitions seen before keep their position; new ones are seeded from
        ``auto_offset_reset``. ``none`` behaves like ``latest`` here instead
        of failing the assignment.

        Args:
            assignments: Partitions now owned by this consumer.
            partition_map: ``"topic:partition"`` -> Partition lookup.
        """
        partition_map = partition_map or {}
        self.assigned_partitions = list(assignments)
        for tp in self.assigned_partitions:
            if tp.key in self.current_offsets:
                continue
            if self.auto_offset_reset is OffsetReset.EARLIEST:
                start = 0
            else:
                partition = partition_map.get(tp.key)
                start = partition.next_offset if partition is not None else 0
            self.current_offsets[tp.key] = start
        self.status = ConsumerStatus.IDLE

    def poll(self, partition_map: Optional[PartitionMap] = None) -> list[PollBatch]:
        """Fetch the next batch from the assigned partitions.

        Args:
            partition_map: ``"topic:partition"`` -> Partition lookup.

        Returns:
            One batch per partition that yielded messages.
        """
        if not self.is_alive or self.is_paused:
            return []
        partition_map = partition_map or {}
        self.last_poll_time = time.time()
        self.status = ConsumerStatus.POLLING

        results: list[PollBatch] = []
        fetched = 0
        for tp in self.assigned_partitions:
            if fetched >= self.max_poll_records:
                break
            partition = partition_map.get(tp.key)
            if partition is None:
                continue
            position = self.current_offsets.get(tp.key, 0)
            batch = partition.read(position, self.max_poll_records - fetched)
            if not batch:
                continue
            results.append(PollBatch(tp.topic, tp.partition_id, tuple(batch)))
            fetched += len(batch)
            self.current_offsets[tp.key] = batch[-1].offset + 1
            self.total_polled += len(batch)

        self.status = ConsumerStatus.PROCESSING if results else ConsumerStatus.IDLE
        if self.enable_auto_commit and results:
            self.commit()

        self._log("poll", f"Polled {fetched} records")
        return results

    def commit(self) -> None:
        """Commit every current position at once."""
        self.committed_offsets.update(self.current_offsets)
        self.total_committed += 1
        self.status = ConsumerStatus.COMMITTING
        self._log("commit", "Offsets committed")

    def settle(self) -> None:
        """Finish a pending commit (committing -> idle)."""
        if self.status is ConsumerStatus.COMMITTING:
            self.status = ConsumerStatus.IDLE

    def pause(self) -> None:
        self.is_paused = True

    def resume(self) -> None:
        self.is_paused = False

    def crash(self) -> None:
        """Simulate consumer crash."""
        self.is_alive = False
        self.status = ConsumerStatus.CRASHED
        self._log("error", "Consumer crashed!")
        logger.info("Consumer %s in group %s crashed", self.id, self.group_id)

    def recover(self) -> None:
        """Simulate consumer recovery."""
        self.is_alive = True
        self.status = ConsumerStatus.IDLE
        self._log("info", "Consumer recovered")

    def get_lag(self, topic: str, partition_id: int, partition: Optional[Partition]) -> int:
        """Broker lag: messages in the partition not yet committed.

        Returns:
            ``max(0, next_offset - committed_offset)``.
        """
        committed = self.committed_offsets.get(partition_key(topic, partition_id), 0)
        log_end = partition.next_offset if partition is not None else 0
        return max(0, log_end - committed)

    @property
    def total_lag(self) -> int:
        """Uncommitted-read lag: read but not yet committed, summed.

        Not the same quantity as ``get_lag``, which measures distance from
        the log end.
        """
        return sum(
            max(0, current - self.committed_offsets.get(key, 0))
            for key, current in self.current_offsets.items()
        )

    def _log(self, kind: str, message: str) -> None:
        self.events.record(SimulationEvent(kind=kind, message=message))

    def __repr__(self) -> str:
        return f"Consumer(id={self.id}, group={self.group_id}, status={self.status.value})"
