"""Domain entities for the Kafka simulator."""

from kafka_sim.domain.entities.broker import Broker
from kafka_sim.domain.entities.consumer import Consumer, PollBatch
from kafka_sim.domain.entities.events import EventLog, RebalanceEvent, SimulationEvent
from kafka_sim.domain.entities.message import Message
from kafka_sim.domain.entities.partition import Partition
from kafka_sim.domain.entities.topic import RoundRobinCounter, Topic, key_hash

__all__ = [
    "Broker",
    "Consumer",
    "PollBatch",
    "EventLog",
    "RebalanceEvent",
    "SimulationEvent",
    "Message",
    "Partition",
    "RoundRobinCounter",
    "Topic",
    "key_hash",
]
