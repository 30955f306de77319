"""Replication manager: high watermark, ISR maintenance, broker failures."""

from __future__ import annotations

from typing import Optional
import logging

from kafka_sim.domain.entities.events import EventLog, SimulationEvent
from kafka_sim.domain.entities.partition import Partition
from kafka_sim.domain.services.cluster import Cluster, LeaderElection

logger = logging.getLogger(__name__)

ISR_SHRINK = "isr-shrink"
ISR_EXPAND = "isr-expand"
BROKER_DOWN = "broker-down"
BROKER_UP = "broker-up"


class ReplicationManager:
    """Periodic, idempotent advancement of partition consistency state.

    Replication is not modelled byte by byte. A tick sets each online
    partition's high watermark to the log end when every ISR member is
    alive, or holds it ``stall_backoff`` records behind otherwise. Dead ISR
    members are then dropped and alive replicas re-admitted at once, with
    no lag check.
    """

    def __init__(self, cluster: Cluster, stall_backoff: int = 1, event_log_size: int = 50):
        """Initialize replication manager.

        Args:
            cluster: Cluster to maintain.
            stall_backoff: Records the HWM trails the log end while an ISR
                member is down.
            event_log_size: Number of recent events kept.
        """
        self.cluster = cluster
        self.stall_backoff = stall_backoff
        self.events: EventLog[SimulationEvent] = EventLog(event_log_size)
        self.last_elections: list[LeaderElection] = []

    def tick(self) -> list[SimulationEvent]:
        """Run one replication round over every partition.

        Returns:
            ISR shrink/expand events emitted by this tick.
        """
        emitted = []
        for _, partition in self.cluster.iter_partitions():
            if not self.cluster.is_broker_alive(partition.leader_id):
                continue  # offline

            if all(self.cluster.is_broker_alive(b) for b in partition.isr_ids):
                partition.high_watermark = partition.latest_offset
            else:
                partition.high_watermark = min(
                    partition.latest_offset,
                    max(0, partition.next_offset - 1 - self.stall_backoff),
                )

            for broker_id in [b for b in partition.isr_ids if not self.cluster.is_broker_alive(b)]:
                partition.remove_from_isr(broker_id)
                emitted.append(self._log_event(ISR_SHRINK, partition, broker_id))

            for broker_id in partition.replica_ids:
                if self.cluster.is_broker_alive(broker_id) and partition.add_to_isr(broker_id):
                    emitted.append(self._log_event(ISR_EXPAND, partition, broker_id))
        return emitted

    def kill_broker(self, broker_id: int) -> bool:
        """Kill a broker and re-elect leaders for what it led.

        Returns:
            False if the broker id is unknown (no-op).
        """
        broker = self.cluster.get_broker(broker_id)
        if broker is None:
            return False
        broker.kill()
        self._log_event(BROKER_DOWN, None, broker_id)
        self.last_elections = self.cluster.handle_broker_failure(broker_id)
        logger.info(
            "Broker %d killed; %d leader elections", broker_id, len(self.last_elections),
        )
        return True

    def restart_broker(self, broker_id: int) -> bool:
        """Restart a broker, re-elect offline partitions and resettle ISR/HWM.

        Returns:
            False if the broker id is unknown (no-op).
        """
        broker = self.cluster.get_broker(broker_id)
        if broker is None:
            return False
        broker.restart()
        self._log_event(BROKER_UP, None, broker_id)
        self.last_elections = self.cluster.handle_broker_restart(broker_id)
        self.tick()
        logger.info("Broker %d restarted", broker_id)
        return True

    def get_under_replicated(self) -> list[dict]:
        """Partitions whose ISR is smaller than the replication factor."""
        return [
            {
                "topic": topic.name,
                "partition_id": p.id,
                "isr_size": len(p.isr_ids),
                "replication_factor": topic.replication_factor,
            }
            for topic, p in self.cluster.iter_partitions()
            if p.is_under_replicated(topic.replication_factor)
        ]

    @property
    def isr_health_score(self) -> int:
        """Percentage (0-100) of partitions with a full ISR."""
        total = healthy = 0
        for topic, partition in self.cluster.iter_partitions():
            total += 1
            if not partition.is_under_replicated(topic.replication_factor):
                healthy += 1
        if total == 0:
            return 100
        # Half-up rounding of 100 * healthy / total
        return (healthy * 200 + total) // (2 * total)

    def _log_event(
        self,
        kind: str,
        partition: Optional[Partition],
        broker_id: int,
    ) -> SimulationEvent:
        return self.events.record(SimulationEvent(
            kind=kind,
            message=f"{kind} broker={broker_id}",
            topic=partition.topic_name if partition else None,
            partition_id=partition.id if partition else None,
            broker_id=broker_id,
        ))
