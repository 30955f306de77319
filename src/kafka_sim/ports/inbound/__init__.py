"""Inbound ports - API contracts for the Kafka simulator.

Inbound ports define the interface that presentation layers (REST, UI,
notebooks) use to drive a simulation session, and the immutable views
they read back. Views are copies: mutating engine state never changes a
view that was already handed out.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

from kafka_sim.domain.entities.events import RebalanceEvent
from kafka_sim.domain.value_objects.simulation_types import CommandStatus


# =============================================================================
# Command results
# =============================================================================


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a simulation command.

    ``revision`` is the session revision after the command; it only moves
    when the command changed state.
    """

    status: CommandStatus
    revision: int
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.status is CommandStatus.OK


@dataclass(frozen=True)
class MetricsSample:
    """One point of the per-tick metrics history."""

    tick: int
    throughput: int  # messages sent by the default producer so far
    lag: int
    rebalances: int
    isr_health: int


# =============================================================================
# Views
# =============================================================================


@dataclass(frozen=True)
class EventView:
    """Recent event surfaced to observers."""

    source: str
    kind: str
    message: str
    timestamp: float


@dataclass(frozen=True)
class BrokerView:
    """Broker state."""

    broker_id: int
    host: str
    port: int
    is_alive: bool
    is_controller: bool
    partition_count: int
    load: float


@dataclass(frozen=True)
class PartitionView:
    """Partition leadership, ISR and offsets."""

    topic: str
    partition_id: int
    leader_id: int
    replica_ids: tuple[int, ...]
    isr_ids: tuple[int, ...]
    next_offset: int
    high_watermark: int
    retained: int
    is_offline: bool
    is_under_replicated: bool


@dataclass(frozen=True)
class TopicView:
    """Topic with its partitions."""

    name: str
    replication_factor: int
    total_messages: int
    partitions: tuple[PartitionView, ...]


@dataclass(frozen=True)
class ProducerView:
    """Producer configuration and counters."""

    producer_id: str
    topic_name: Optional[str]
    acks: str
    idempotent: bool
    retries: int
    batch_size: int
    linger_ms: int
    compression_type: str
    total_sent: int
    total_failed: int
    last_latency_ms: float
    latency_label: str
    durability_label: str


@dataclass(frozen=True)
class ConsumerView:
    """Consumer offsets and status."""

    consumer_id: str
    status: str
    is_alive: bool
    assigned_partitions: tuple[str, ...]
    current_offsets: dict[str, int]
    committed_offsets: dict[str, int]
    total_polled: int
    total_committed: int
    total_lag: int
    events: tuple[EventView, ...] = ()


@dataclass(frozen=True)
class LagEntry:
    """Lag of one consumer over its assigned partitions."""

    consumer_id: str
    total_lag: int
    partitions: tuple[str, ...]


@dataclass(frozen=True)
class GroupView:
    """Consumer group membership and ownership."""

    group_id: str
    strategy: str
    state: str
    generation: int
    topic_names: tuple[str, ...]
    consumers: tuple[ConsumerView, ...]
    ownership: dict[str, str]
    idle_consumers: tuple[str, ...]
    active_consumers: tuple[str, ...]
    lag: tuple[LagEntry, ...]
    rebalance_log: tuple[RebalanceEvent, ...]

    @property
    def total_lag(self) -> int:
        return sum(entry.total_lag for entry in self.lag)


@dataclass(frozen=True)
class ClusterSnapshot:
    """Everything an observer needs to render the session."""

    revision: int
    tick_count: int
    is_running: bool
    controller_id: int
    selected_topic: Optional[str]
    isr_health: int
    brokers: tuple[BrokerView, ...]
    topics: tuple[TopicView, ...]
    groups: tuple[GroupView, ...]
    producers: tuple[ProducerView, ...]
    under_replicated: tuple[dict, ...] = ()
    offline_partitions: tuple[str, ...] = ()
    events: tuple[EventView, ...] = field(default_factory=tuple)


# =============================================================================
# Simulation Port
# =============================================================================


@runtime_checkable
class SimulationPort(Protocol):
    """Protocol for driving a simulation session.

    Every command runs to completion synchronously and returns a
    ``CommandResult``; invalid input is reported through its status, never
    raised.

    Example:
        result = sim.create_topic("clicks", partitions=4, replication_factor=2)
        sim.produce("hello", key="user-1", topic="clicks")
        sim.tick()
        snapshot = sim.snapshot()
    """

    @property
    @abstractmethod
    def revision(self) -> int:
        """Monotonic counter bumped by every state change."""
        ...

    @abstractmethod
    def create_topic(self, name: str, partitions: int, replication_factor: int) -> CommandResult:
        """Create a topic and rebalance every group onto it."""
        ...

    @abstractmethod
    def select_topic(self, name: str) -> CommandResult:
        """Set the default target topic."""
        ...

    @abstractmethod
    def add_broker(self) -> CommandResult:
        """Add a broker to the cluster."""
        ...

    @abstractmethod
    def kill_broker(self, broker_id: int) -> CommandResult:
        """Kill a broker and re-elect the leaders it held."""
        ...

    @abstractmethod
    def restart_broker(self, broker_id: int) -> CommandResult:
        """Restart a dead broker."""
        ...

    @abstractmethod
    def produce(self, value: Any, key: Optional[str] = None, topic: Optional[str] = None) -> CommandResult:
        """Produce one message."""
        ...

    @abstractmethod
    def produce_messages(self, count: int = 5, key: Optional[str] = None) -> CommandResult:
        """Produce ``count`` messages to the selected topic."""
        ...

    @abstractmethod
    def burst(self, count: int = 10, key_prefix: Optional[str] = None, topic: Optional[str] = None) -> CommandResult:
        """Produce a burst of messages."""
        ...

    @abstractmethod
    def set_producer_config(self, **settings: Any) -> CommandResult:
        """Update the default producer's settings."""
        ...

    @abstractmethod
    def create_group(
        self,
        group_id: Optional[str] = None,
        topics: Optional[list[str]] = None,
        strategy: Optional[str] = None,
    ) -> CommandResult:
        """Create a consumer group with one consumer."""
        ...

    @abstractmethod
    def remove_group(self, group_id: str) -> CommandResult:
        ...

    @abstractmethod
    def add_consumer(self, group_id: str) -> CommandResult:
        ...

    @abstractmethod
    def remove_consumer(self, group_id: str, consumer_id: str) -> CommandResult:
        ...

    @abstractmethod
    def crash_consumer(self, group_id: str, consumer_id: str) -> CommandResult:
        ...

    @abstractmethod
    def set_assignor_strategy(self, group_id: str, strategy: str) -> CommandResult:
        ...

    @abstractmethod
    def poll_group(self, group_id: str) -> CommandResult:
        ...

    @abstractmethod
    def commit_group(self, group_id: str) -> CommandResult:
        ...

    @abstractmethod
    def tick(self) -> CommandResult:
        """Run one replication tick and record a metrics sample."""
        ...

    @abstractmethod
    def snapshot(self) -> ClusterSnapshot:
        """Build an immutable view of the whole session."""
        ...


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    "CommandResult",
    "MetricsSample",
    "EventView",
    "BrokerView",
    "PartitionView",
    "TopicView",
    "ProducerView",
    "ConsumerView",
    "LagEntry",
    "GroupView",
    "ClusterSnapshot",
    "SimulationPort",
]
