"""Producer service: routing, append and simulated ack latency."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union
import logging
import random

from kafka_sim.domain.entities.events import EventLog, SimulationEvent
from kafka_sim.domain.entities.message import Message
from kafka_sim.domain.entities.topic import RoundRobinCounter, Topic
from kafka_sim.domain.value_objects.identifiers import create_producer_id
from kafka_sim.domain.value_objects.simulation_types import (
    Acks,
    CommandStatus,
    CompressionType,
)

logger = logging.getLogger(__name__)

# Distinct keys cycled through by a keyed burst
BURST_KEY_CARDINALITY = 5


@dataclass(frozen=True)
class ProduceResult:
    """Outcome of a single produce call."""
    success: bool
    partition_id: Optional[int] = None
    offset: Optional[int] = None
    latency_ms: float = 0.0
    message: Optional[Message] = None
    error: Optional[CommandStatus] = None


class Producer:
    """Client that routes messages to partitions and appends them.

    ``acks`` only shapes the simulated latency; the write itself is always
    a direct append to the routed partition. Idempotent mode stamps each
    message with the producer epoch and a per-partition sequence number,
    but nothing downstream deduplicates on them. ``batch_size``,
    ``linger_ms``, ``retries`` and ``compression_type`` are descriptive only.
    """

    def __init__(
        self,
        topic_name: Optional[str] = None,
        producer_id: Optional[str] = None,
        acks: Union[Acks, int, str] = Acks.LEADER,
        retries: int = 3,
        idempotent: bool = False,
        batch_size: int = 16384,
        linger_ms: int = 0,
        compression_type: Union[CompressionType, str] = CompressionType.NONE,
        event_log_size: int = 50,
        rng: Optional[random.Random] = None,
    ):
        """Initialize producer.

        Args:
            topic_name: Default target topic.
            producer_id: Producer ID (random if omitted).
            acks: Durability level.
            retries: Retry budget (descriptive).
            idempotent: Stamp epoch and sequence numbers on messages.
            batch_size: Batch size in bytes (descriptive).
            linger_ms: Linger time in ms (descriptive).
            compression_type: Compression codec (descriptive).
            event_log_size: Number of recent events kept.
            rng: Random source for latency jitter.
        """
        self.id = producer_id or create_producer_id()
        self.topic_name = topic_name
        self.acks = Acks.parse(acks)
        self.retries = retries
        self.idempotent = idempotent
        self.batch_size = batch_size
        self.linger_ms = linger_ms
        self.compression_type = CompressionType(compression_type)

        self.producer_epoch = 0
        self.sequence_numbers: dict[int, int] = {}
        self._round_robin = RoundRobinCounter()
        self._rng = rng or random.Random()

        self.total_sent = 0
        self.total_failed = 0
        self.total_retried = 0
        self.last_latency_ms = 0.0
        self.events: EventLog[SimulationEvent] = EventLog(event_log_size)

    def produce(self, topic: Topic, value: Any, key: Optional[str] = None) -> ProduceResult:
        """Route and append one message.

        Args:
            topic: Target topic.
            value: Message payload.
            key: Routing key; None or empty means round-robin.

        Returns:
            Produce result; ``success`` is False if the routed partition
            does not exist.
        """
        message = Message(value=value, key=key)
        partition_id = topic.route_message(message, self._round_robin)
        partition = topic.get_partition(partition_id)

        if partition is None:
            self._log("error", f"No partition {partition_id} in topic {topic.name}")
            self.total_failed += 1
            logger.warning("Routed to missing partition %s:%d", topic.name, partition_id)
            return ProduceResult(success=False, error=CommandStatus.PARTITION_NOT_FOUND)

        latency_ms = self._simulate_latency()
        self.last_latency_ms = latency_ms

        if self.idempotent:
            sequence = self.sequence_numbers.get(partition_id, 0)
            message.producer_epoch = self.producer_epoch
            message.sequence_number = sequence
            self.sequence_numbers[partition_id] = sequence + 1

        offset = partition.append(message)
        self.total_sent += 1

        self._log(
            "sent",
            f"-> {topic.name}[{partition_id}]@{offset} key=\"{key if key is not None else 'null'}\" "
            f"latency={latency_ms:.1f}ms",
            topic=topic.name,
            partition_id=partition_id,
        )
        return ProduceResult(
            success=True,
            partition_id=partition_id,
            offset=offset,
            latency_ms=latency_ms,
            message=message,
        )

    def burst(
        self,
        topic: Topic,
        count: int = 10,
        key_prefix: Optional[str] = None,
    ) -> list[ProduceResult]:
        """Produce ``count`` messages back to back.

        With a ``key_prefix`` the keys cycle through
        ``<prefix>-0`` .. ``<prefix>-4`` so each key sticks to one partition.

        Returns:
            One result per message.
        """
        results = []
        for i in range(count):
            key = f"{key_prefix}-{i % BURST_KEY_CARDINALITY}" if key_prefix else None
            results.append(self.produce(topic, f"event-{self.total_sent}", key))
        return results

    def update_config(
        self,
        acks: Union[Acks, int, str, None] = None,
        idempotent: Optional[bool] = None,
        retries: Optional[int] = None,
        batch_size: Optional[int] = None,
        linger_ms: Optional[int] = None,
        compression_type: Union[CompressionType, str, None] = None,
        topic_name: Optional[str] = None,
    ) -> None:
        """Apply the provided settings, leaving the rest untouched."""
        if acks is not None:
            self.acks = Acks.parse(acks)
        if idempotent is not None:
            self.idempotent = idempotent
        if retries is not None:
            self.retries = retries
        if batch_size is not None:
            self.batch_size = batch_size
        if linger_ms is not None:
            self.linger_ms = linger_ms
        if compression_type is not None:
            self.compression_type = CompressionType(compression_type)
        if topic_name is not None:
            self.topic_name = topic_name

    def _simulate_latency(self) -> float:
        """Simulated ack latency in ms, increasing with durability."""
        if self.acks is Acks.NONE:
            return self._rng.uniform(0, 2)
        if self.acks is Acks.LEADER:
            return 5 + self._rng.uniform(0, 15)
        return 20 + self._rng.uniform(0, 80)

    @property
    def latency_label(self) -> str:
        if self.acks is Acks.NONE:
            return "Ultra Low"
        if self.acks is Acks.LEADER:
            return "Low"
        return "High"

    @property
    def durability_label(self) -> str:
        if self.acks is Acks.NONE:
            return "Risky (data loss possible)"
        if self.acks is Acks.LEADER:
            return "Moderate"
        return "Strong (all ISR replicated)"

    def _log(self, kind: str, message: str, **context: Any) -> None:
        self.events.record(SimulationEvent(kind=kind, message=message, **context))
