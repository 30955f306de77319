"""Partition entity: append-only log with leadership and ISR state."""

from __future__ import annotations

from collections import deque
from typing import Iterable, Optional

from kafka_sim.domain.entities.message import Message
from kafka_sim.domain.value_objects.identifiers import NO_BROKER, partition_key

DEFAULT_LOG_RETENTION = 200


class Partition:
    """Ordered, append-only log of messages within a topic.

    The partition owns offset assignment and the replication bookkeeping
    (leader, replica set, ISR, high watermark). Only the most recent
    ``retention`` messages are kept in memory; offsets keep counting past
    evicted entries.

    Invariants:
        - ``high_watermark <= latest_offset`` (both -1 while empty)
        - ``isr_ids`` is a subset of ``replica_ids``
        - ``leader_id`` is a replica, or ``-1`` when the partition is offline
    """

    def __init__(
        self,
        partition_id: int,
        topic_name: str,
        leader_id: int,
        replica_ids: Iterable[int] = (),
        retention: int = DEFAULT_LOG_RETENTION,
    ):
        """Initialize partition.

        Args:
            partition_id: Index within the topic.
            topic_name: Owning topic.
            leader_id: Broker handling reads and writes.
            replica_ids: All replica brokers, leader included.
            retention: Number of messages kept in memory.
        """
        self.id = partition_id
        self.topic_name = topic_name
        self.leader_id = leader_id
        self.replica_ids: list[int] = list(replica_ids)
        # Starts fully replicated
        self.isr_ids: list[int] = list(self.replica_ids)
        self.next_offset = 0
        self.high_watermark = -1
        self._log: deque[Message] = deque(maxlen=retention)

    @property
    def key(self) -> str:
        return partition_key(self.topic_name, self.id)

    @property
    def latest_offset(self) -> int:
        """Offset of the newest message (-1 when empty)."""
        return self.next_offset - 1

    @property
    def log(self) -> list[Message]:
        """Retained messages, oldest first."""
        return list(self._log)

    @property
    def log_start_offset(self) -> int:
        """Offset of the oldest retained message."""
        return self._log[0].offset if self._log else self.next_offset

    @property
    def committed_messages(self) -> list[Message]:
        """Retained messages at or below the high watermark."""
        return [m for m in self._log if m.offset <= self.high_watermark]

    @property
    def is_offline(self) -> bool:
        return self.leader_id == NO_BROKER

    def is_under_replicated(self, replication_factor: int) -> bool:
        return len(self.isr_ids) < replication_factor

    def append(self, message: Message) -> int:
        """Append a message to the log.

        Args:
            message: Message to append.

        Returns:
            Assigned offset.
        """
        message.offset = self.next_offset
        message.partition_id = self.id
        self.next_offset += 1
        self._log.append(message)
        return message.offset

    def read(self, offset: int, max_records: Optional[int] = None) -> list[Message]:
        """Read retained messages with ``offset >= offset``.

        Args:
            offset: Starting offset.
            max_records: Maximum records to return (unbounded if None).

        Returns:
            Messages in offset order.
        """
        if max_records is not None and max_records <= 0:
            return []
        batch = []
        for message in self._log:
            if message.offset < offset:
                continue
            batch.append(message)
            if max_records is not None and len(batch) >= max_records:
                break
        return batch

    def remove_from_isr(self, broker_id: int) -> bool:
        """Drop a broker from the ISR.

        Returns:
            True if the broker was in the ISR.
        """
        if broker_id not in self.isr_ids:
            return False
        self.isr_ids = [b for b in self.isr_ids if b != broker_id]
        return True

    def add_to_isr(self, broker_id: int) -> bool:
        """Re-admit a replica to the ISR.

        Returns:
            True if the ISR changed.
        """
        if broker_id not in self.replica_ids or broker_id in self.isr_ids:
            return False
        self.isr_ids.append(broker_id)
        return True

    def get_stats(self) -> dict:
        """Get partition statistics.

        Returns:
            Dictionary with stats.
        """
        return {
            "topic": self.topic_name,
            "partition_id": self.id,
            "leader_id": self.leader_id,
            "replica_ids": list(self.replica_ids),
            "isr_ids": list(self.isr_ids),
            "next_offset": self.next_offset,
            "high_watermark": self.high_watermark,
            "retained": len(self._log),
        }

    def __repr__(self) -> str:
        return (
            f"Partition(topic={self.topic_name}, id={self.id}, "
            f"leader={self.leader_id}, isr={self.isr_ids})"
        )
