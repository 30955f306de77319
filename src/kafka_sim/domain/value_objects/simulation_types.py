"""Enumerations shared by the simulation engine."""

from __future__ import annotations

from enum import Enum
from typing import Union


class Acks(Enum):
    """Producer durability level.

    0 = fire-and-forget, 1 = leader ack, "all" = every ISR member acks.
    """
    NONE = 0
    LEADER = 1
    ALL = "all"

    @classmethod
    def parse(cls, value: Union["Acks", int, str]) -> "Acks":
        """Parse an acks setting; -1 and "-1" are aliases for "all"."""
        if isinstance(value, Acks):
            return value
        if value in (-1, "-1"):
            return cls.ALL
        if isinstance(value, str) and value.isdigit():
            value = int(value)
        return cls(value)

    @property
    def label(self) -> str:
        return str(self.value)


class CompressionType(Enum):
    """Producer compression codec (illustrative only)."""
    NONE = "none"
    GZIP = "gzip"
    SNAPPY = "snappy"
    LZ4 = "lz4"
    ZSTD = "zstd"


class OffsetReset(Enum):
    """Where a consumer starts when it has no position for a partition."""
    EARLIEST = "earliest"
    LATEST = "latest"
    NONE = "none"


class DeliverySemantics(Enum):
    """Delivery guarantee a consumer advertises."""
    AT_MOST_ONCE = "at-most-once"
    AT_LEAST_ONCE = "at-least-once"
    EXACTLY_ONCE = "exactly-once"


class ConsumerStatus(Enum):
    """Consumer poll loop state."""
    IDLE = "idle"
    POLLING = "polling"
    PROCESSING = "processing"
    COMMITTING = "committing"
    CRASHED = "crashed"


class AssignorStrategy(Enum):
    """Partition assignment strategy used on rebalance."""
    RANGE = "range"
    ROUND_ROBIN = "round-robin"
    STICKY = "sticky"


class GroupState(Enum):
    """Consumer group coordination state."""
    STABLE = "stable"
    REBALANCING = "rebalancing"


class RebalanceReason(Enum):
    """What triggered a rebalance."""
    CONSUMER_JOINED = "consumer-joined"
    CONSUMER_LEFT = "consumer-left"
    CONSUMER_CRASHED = "consumer-crashed"
    SUBSCRIPTION_CHANGED = "subscription-changed"
    STRATEGY_CHANGED = "strategy-changed"
    TOPOLOGY_CHANGED = "topology-changed"


class CommandStatus(Enum):
    """Outcome of a simulation command."""
    OK = "ok"
    TOPIC_NOT_FOUND = "topic-not-found"
    TOPIC_EXISTS = "topic-exists"
    PARTITION_NOT_FOUND = "partition-not-found"
    BROKER_NOT_FOUND = "broker-not-found"
    GROUP_NOT_FOUND = "group-not-found"
    CONSUMER_NOT_FOUND = "consumer-not-found"
    INVALID_ARGUMENT = "invalid-argument"

    @property
    def is_not_found(self) -> bool:
        return self.value.endswith("not-found")
