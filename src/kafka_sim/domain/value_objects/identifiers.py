"""Kafka simulator value objects."""

import uuid
from dataclasses import dataclass
from typing import NewType

# Type-safe identifiers
BrokerId = NewType('BrokerId', int)
TopicName = NewType('TopicName', str)
PartitionId = NewType('PartitionId', int)
ConsumerId = NewType('ConsumerId', str)
GroupId = NewType('GroupId', str)
ProducerId = NewType('ProducerId', str)
Offset = NewType('Offset', int)

# Broker id meaning "no leader" / "no controller"
NO_BROKER = BrokerId(-1)


def _short_token(length: int) -> str:
    return uuid.uuid4().hex[:length]


def partition_key(topic: str, partition_id: int) -> str:
    """Build the "topic:partition" key used by offset tables and partition maps.

    Args:
        topic: Topic name.
        partition_id: Partition index within the topic.

    Returns:
        Partition key.
    """
    return f"{topic}:{partition_id}"


@dataclass(frozen=True, order=True)
class TopicPartition:
    """A (topic, partition) pair, the unit of assignment."""
    topic: str
    partition_id: int

    @property
    def key(self) -> str:
        return partition_key(self.topic, self.partition_id)

    @classmethod
    def from_key(cls, key: str) -> "TopicPartition":
        topic, _, partition = key.rpartition(":")
        return cls(topic, int(partition))


def create_message_id() -> str:
    """Create a random message ID."""
    return f"msg-{_short_token(6)}"


def create_producer_id() -> ProducerId:
    """Create a random producer ID."""
    return ProducerId(f"producer-{_short_token(4)}")


def create_consumer_id() -> ConsumerId:
    """Create a random consumer ID."""
    return ConsumerId(f"consumer-{_short_token(4)}")


def create_group_id() -> GroupId:
    """Create a random consumer group ID."""
    return GroupId(f"cg-{_short_token(4)}")
