"""Simulation session: owns the engine graph and serializes every command.

The session is the single owner of the cluster, the group coordinator,
the replication manager and the producers. Commands mutate that graph in
place and bump ``revision`` once; observers re-read through ``snapshot()``.
"""

from __future__ import annotations

from collections import deque
from dataclasses import asdict
from typing import Any, Optional
import random
import time

from opentelemetry import trace

from kafka_sim.application.scheduler import TickScheduler
from kafka_sim.domain.entities.consumer import Consumer
from kafka_sim.domain.entities.topic import Topic
from kafka_sim.domain.services.cluster import Cluster, LeaderElection
from kafka_sim.domain.services.consumer_group import ConsumerGroup
from kafka_sim.domain.services.group_coordinator import GroupCoordinator
from kafka_sim.domain.services.producer import Producer, ProduceResult
from kafka_sim.domain.services.replication_manager import (
    ISR_EXPAND,
    ISR_SHRINK,
    ReplicationManager,
)
from kafka_sim.domain.value_objects.identifiers import create_group_id
from kafka_sim.domain.value_objects.simulation_types import (
    Acks,
    AssignorStrategy,
    CommandStatus,
    CompressionType,
    RebalanceReason,
)
from kafka_sim.infrastructure.config import Config, get_config
from kafka_sim.infrastructure.logging import get_logger
from kafka_sim.infrastructure.metrics import SimulationMetrics, get_metrics
from kafka_sim.infrastructure.tracing import annotate_current_span, trace_span
from kafka_sim.ports.inbound import (
    BrokerView,
    ClusterSnapshot,
    CommandResult,
    ConsumerView,
    EventView,
    GroupView,
    LagEntry,
    MetricsSample,
    PartitionView,
    ProducerView,
    SimulationPort,
    TopicView,
)

logger = get_logger(__name__)

REPLICATION_JOB = "replication-tick"
AUTO_PRODUCE_JOB = "auto-produce"
POLL_JOB = "poll-loop"

# Recent events included in a snapshot, per source
SNAPSHOT_EVENT_LIMIT = 20


class Simulation(SimulationPort):
    """Interactive Kafka simulation session.

    Example:
        sim = Simulation()
        sim.create_topic("clicks", partitions=4, replication_factor=2)
        sim.burst(20, key_prefix="user")
        sim.kill_broker(0)
        sim.tick()
        print(sim.snapshot().isr_health)
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        metrics: Optional[SimulationMetrics] = None,
        tracer: Optional[trace.Tracer] = None,
        rng: Optional[random.Random] = None,
    ):
        """Boot the session from configuration.

        Args:
            config: Simulator configuration (global config if omitted).
            metrics: Prometheus metrics sink (global registry if omitted).
            tracer: Tracer for command spans (global tracer if omitted).
            rng: Random source for producer latency jitter; seeded from
                ``simulation.seed`` when omitted.
        """
        self.config = config or get_config()
        self.metrics = metrics or get_metrics()
        self._tracer = tracer
        self._rng = rng or random.Random(self.config.simulation.seed)

        cluster_cfg = self.config.cluster
        self.cluster = Cluster(
            broker_count=cluster_cfg.broker_count,
            base_port=cluster_cfg.base_port,
            log_retention=cluster_cfg.log_retention,
        )
        for topic_cfg in cluster_cfg.initial_topics:
            self.cluster.create_topic(topic_cfg.name, topic_cfg.partitions, topic_cfg.replication_factor)

        self.coordinator = GroupCoordinator(
            rebalance_log_size=self.config.group.rebalance_log_size,
            consumer_defaults=self._consumer_defaults(),
        )
        self.replication = ReplicationManager(
            self.cluster,
            stall_backoff=self.config.replication.stall_backoff,
            event_log_size=self.config.replication.event_log_size,
        )

        self.selected_topic: Optional[str] = (
            cluster_cfg.initial_topics[0].name if cluster_cfg.initial_topics else None
        )
        producer_cfg = self.config.producer
        self.producers: list[Producer] = [
            Producer(
                topic_name=self.selected_topic,
                acks=producer_cfg.acks,
                retries=producer_cfg.retries,
                idempotent=producer_cfg.idempotent,
                batch_size=producer_cfg.batch_size,
                linger_ms=producer_cfg.linger_ms,
                compression_type=producer_cfg.compression_type,
                event_log_size=producer_cfg.event_log_size,
                rng=self._rng,
            )
        ]

        group_cfg = self.config.group
        default_group = self.coordinator.create_group(
            group_cfg.default_group_id,
            group_cfg.default_topics,
            group_cfg.default_strategy,
        )
        for _ in range(group_cfg.default_consumer_count):
            default_group.add_consumer(self._topics(), self._partition_map())
        self.selected_group_id: Optional[str] = default_group.id

        self.scheduler = TickScheduler()
        self.is_running = False
        self.tick_count = 0
        self.metrics_history: deque[MetricsSample] = deque(
            maxlen=self.config.simulation.metrics_history_size
        )
        self._revision = 0

        self.metrics.system_info.info({
            "brokers": str(cluster_cfg.broker_count),
            "environment": self.config.observability.environment,
        })
        self._update_gauges()
        logger.info(
            "simulation_booted",
            brokers=len(self.cluster.brokers),
            topics=list(self.cluster.topics),
            default_group=default_group.id,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _consumer_defaults(self) -> dict[str, Any]:
        cfg = self.config.consumer
        return {
            "auto_offset_reset": cfg.auto_offset_reset,
            "max_poll_records": cfg.max_poll_records,
            "fetch_min_bytes": cfg.fetch_min_bytes,
            "max_poll_interval_ms": cfg.max_poll_interval_ms,
            "enable_auto_commit": cfg.enable_auto_commit,
            "auto_commit_interval_ms": cfg.auto_commit_interval_ms,
            "delivery_semantics": cfg.delivery_semantics,
            "event_log_size": cfg.event_log_size,
        }

    def _topics(self) -> list[Topic]:
        return list(self.cluster.topics.values())

    def _partition_map(self):
        return self.cluster.partition_map()

    @property
    def producer(self) -> Producer:
        """The default producer."""
        return self.producers[0]

    @property
    def revision(self) -> int:
        return self._revision

    def _bump(self) -> int:
        self._revision += 1
        self.metrics.revision.set(self._revision)
        return self._revision

    def _ok(self, value: Any = None) -> CommandResult:
        annotate_current_span(status=CommandStatus.OK.value)
        return CommandResult(CommandStatus.OK, self._bump(), value)

    def _fail(self, status: CommandStatus, value: Any = None) -> CommandResult:
        annotate_current_span(status=status.value)
        logger.info("command_rejected", status=status.value, detail=value)
        return CommandResult(status, self._revision, value)

    def _span(self, command: str, **attributes: Any):
        return trace_span(
            f"simulation.{command}",
            {f"kafka_sim.{k}": v for k, v in attributes.items()},
            tracer=self._tracer,
        )

    def _rebalance_all(self, reason: RebalanceReason) -> None:
        self.coordinator.rebalance_all(self._topics(), self._partition_map(), reason)
        for group in self.coordinator.get_all_groups():
            self.metrics.rebalances.labels(consumer_group=group.id, reason=reason.value).inc()

    def _subscribe_all(self, topic_name: str) -> None:
        for group in self.coordinator.get_all_groups():
            group.subscribe(topic_name)

    def _record_elections(self, elections: list[LeaderElection]) -> None:
        for election in elections:
            result = "offline" if election.went_offline else "elected"
            self.metrics.leader_elections.labels(result=result).inc()

    def _record_produce(self, topic_name: str, result: ProduceResult) -> None:
        acks = self.producer.acks.label
        if result.success:
            self.metrics.messages_produced.labels(topic=topic_name, acks=acks).inc()
            self.metrics.produce_latency.labels(acks=acks).observe(result.latency_ms / 1000)
        else:
            error = result.error.value if result.error else "unknown"
            self.metrics.produce_errors.labels(topic=topic_name, error_type=error).inc()

    def _group_or_none(self, group_id: str) -> Optional[ConsumerGroup]:
        return self.coordinator.get_group(group_id)

    # ------------------------------------------------------------------
    # Topics and brokers
    # ------------------------------------------------------------------

    def create_topic(
        self,
        name: str,
        partitions: int = 3,
        replication_factor: int = 2,
    ) -> CommandResult:
        """Create a topic, subscribe every group to it and rebalance.

        Returns:
            ``TOPIC_EXISTS`` for a duplicate name, ``INVALID_ARGUMENT`` for
            an empty name or non-positive counts; the created ``TopicView``
            otherwise.
        """
        with self._span("create_topic", topic=name, partitions=partitions):
            if not name or partitions < 1 or replication_factor < 1:
                return self._fail(CommandStatus.INVALID_ARGUMENT, name)
            if self.cluster.get_topic(name) is not None:
                return self._fail(CommandStatus.TOPIC_EXISTS, name)

            topic = self.cluster.create_topic(name, partitions, replication_factor)
            self._subscribe_all(name)
            self._rebalance_all(RebalanceReason.SUBSCRIPTION_CHANGED)
            self._update_gauges()
            logger.info(
                "topic_created",
                topic=name,
                partitions=partitions,
                replication_factor=replication_factor,
            )
            return self._ok(self._topic_view(topic))

    def select_topic(self, name: str) -> CommandResult:
        """Make ``name`` the default target and subscribe every group to it."""
        with self._span("select_topic", topic=name):
            if self.cluster.get_topic(name) is None:
                return self._fail(CommandStatus.TOPIC_NOT_FOUND, name)
            self.selected_topic = name
            self._subscribe_all(name)
            self._rebalance_all(RebalanceReason.SUBSCRIPTION_CHANGED)
            logger.info("topic_selected", topic=name)
            return self._ok(name)

    def add_broker(self) -> CommandResult:
        """Add a broker; existing partitions are not moved onto it."""
        with self._span("add_broker"):
            broker_id = self.cluster.add_broker()
            self._update_gauges()
            logger.info("broker_added", broker_id=broker_id)
            return self._ok(broker_id)

    def kill_broker(self, broker_id: int) -> CommandResult:
        """Kill a broker, re-elect its partitions and rebalance all groups.

        Returns:
            The leader elections performed.
        """
        with self._span("kill_broker", broker_id=broker_id):
            if not self.replication.kill_broker(broker_id):
                return self._fail(CommandStatus.BROKER_NOT_FOUND, broker_id)
            elections = list(self.replication.last_elections)
            self._record_elections(elections)
            self._rebalance_all(RebalanceReason.TOPOLOGY_CHANGED)
            self._update_gauges()
            logger.warning(
                "broker_killed",
                broker_id=broker_id,
                elections=len(elections),
                offline=sum(1 for e in elections if e.went_offline),
            )
            return self._ok(elections)

    def restart_broker(self, broker_id: int) -> CommandResult:
        """Restart a broker, re-elect offline partitions and rebalance."""
        with self._span("restart_broker", broker_id=broker_id):
            if not self.replication.restart_broker(broker_id):
                return self._fail(CommandStatus.BROKER_NOT_FOUND, broker_id)
            elections = list(self.replication.last_elections)
            self._record_elections(elections)
            self._rebalance_all(RebalanceReason.TOPOLOGY_CHANGED)
            self._update_gauges()
            logger.info("broker_restarted", broker_id=broker_id, elections=len(elections))
            return self._ok(elections)

    # ------------------------------------------------------------------
    # Producing
    # ------------------------------------------------------------------

    def produce(
        self,
        value: Any,
        key: Optional[str] = None,
        topic: Optional[str] = None,
    ) -> CommandResult:
        """Produce one message with the default producer.

        Args:
            value: Payload.
            key: Routing key; None or empty means round-robin.
            topic: Target topic (selected topic if omitted).

        Returns:
            The ``ProduceResult``; a failed produce carries its error status.
        """
        topic_name = topic or self.selected_topic
        with self._span("produce", topic=topic_name, key=key):
            target = self.cluster.get_topic(topic_name) if topic_name else None
            if target is None:
                return self._fail(CommandStatus.TOPIC_NOT_FOUND, topic_name)
            result = self.producer.produce(target, value, key)
            self._record_produce(target.name, result)
            if not result.success:
                annotate_current_span(status=result.error.value)
                return CommandResult(result.error, self._bump(), result)
            return self._ok(result)

    def produce_messages(self, count: int = 5, key: Optional[str] = None) -> CommandResult:
        """Produce ``count`` timestamped messages to the selected topic."""
        with self._span("produce_messages", topic=self.selected_topic, count=count):
            if count < 0:
                return self._fail(CommandStatus.INVALID_ARGUMENT, count)
            target = self.cluster.get_topic(self.selected_topic) if self.selected_topic else None
            if target is None:
                return self._fail(CommandStatus.TOPIC_NOT_FOUND, self.selected_topic)
            stamp = int(time.time() * 1000)
            results = []
            for i in range(count):
                result = self.producer.produce(target, f"event-{stamp}-{i}", key)
                self._record_produce(target.name, result)
                results.append(result)
            logger.debug("messages_produced", topic=target.name, count=count)
            return self._ok(results)

    def burst(
        self,
        count: int = 10,
        key_prefix: Optional[str] = None,
        topic: Optional[str] = None,
    ) -> CommandResult:
        """Produce a burst; with ``key_prefix`` keys cycle over five values."""
        topic_name = topic or self.selected_topic
        with self._span("burst", topic=topic_name, count=count):
            if count < 0:
                return self._fail(CommandStatus.INVALID_ARGUMENT, count)
            target = self.cluster.get_topic(topic_name) if topic_name else None
            if target is None:
                return self._fail(CommandStatus.TOPIC_NOT_FOUND, topic_name)
            results = self.producer.burst(target, count, key_prefix)
            for result in results:
                self._record_produce(target.name, result)
            logger.info("burst_produced", topic=target.name, count=count, key_prefix=key_prefix)
            return self._ok(results)

    def set_producer_config(self, **settings: Any) -> CommandResult:
        """Update the default producer; only the given settings change.

        Accepted keys: ``acks``, ``idempotent``, ``retries``, ``batch_size``,
        ``linger_ms``, ``compression_type``, ``topic_name``.
        """
        with self._span("set_producer_config"):
            allowed = {
                "acks", "idempotent", "retries", "batch_size",
                "linger_ms", "compression_type", "topic_name",
            }
            unknown = set(settings) - allowed
            if unknown:
                return self._fail(CommandStatus.INVALID_ARGUMENT, sorted(unknown))
            try:
                if settings.get("acks") is not None:
                    Acks.parse(settings["acks"])
                if settings.get("compression_type") is not None:
                    CompressionType(settings["compression_type"])
            except ValueError:
                return self._fail(CommandStatus.INVALID_ARGUMENT, settings)
            topic_name = settings.get("topic_name")
            if topic_name is not None and self.cluster.get_topic(topic_name) is None:
                return self._fail(CommandStatus.TOPIC_NOT_FOUND, topic_name)

            self.producer.update_config(**settings)
            logger.info("producer_configured", **{k: str(v) for k, v in settings.items()})
            return self._ok(self._producer_view(self.producer))

    # ------------------------------------------------------------------
    # Consumer groups
    # ------------------------------------------------------------------

    def create_group(
        self,
        group_id: Optional[str] = None,
        topics: Optional[list[str]] = None,
        strategy: Optional[str] = None,
    ) -> CommandResult:
        """Create a group with one consumer.

        A duplicate id is made unique by appending a millisecond timestamp
        rather than replacing the existing group.

        Returns:
            The id the group was registered under.
        """
        with self._span("create_group", group_id=group_id, strategy=strategy):
            try:
                assignor = AssignorStrategy(strategy or self.config.group.default_strategy)
            except ValueError:
                return self._fail(CommandStatus.INVALID_ARGUMENT, strategy)
            topic_names = list(topics) if topics else (
                [self.selected_topic] if self.selected_topic else []
            )
            group_id = group_id or create_group_id()
            if self.coordinator.get_group(group_id) is not None:
                group_id = f"{group_id}-{int(time.time() * 1000)}"

            group = self.coordinator.create_group(group_id, topic_names, assignor)
            group.add_consumer(self._topics(), self._partition_map())
            self.metrics.rebalances.labels(
                consumer_group=group.id, reason=RebalanceReason.CONSUMER_JOINED.value,
            ).inc()
            self._update_gauges()
            logger.info("group_created", group_id=group.id, strategy=assignor.value, topics=topic_names)
            return self._ok(group.id)

    def remove_group(self, group_id: str) -> CommandResult:
        with self._span("remove_group", group_id=group_id):
            if not self.coordinator.remove_group(group_id):
                return self._fail(CommandStatus.GROUP_NOT_FOUND, group_id)
            if self.selected_group_id == group_id:
                self.selected_group_id = None
            self.metrics.consumer_lag.labels(consumer_group=group_id).set(0)
            self._update_gauges()
            logger.info("group_removed", group_id=group_id)
            return self._ok(group_id)

    def add_consumer(self, group_id: str) -> CommandResult:
        """Join a new consumer to a group (triggers a rebalance)."""
        with self._span("add_consumer", group_id=group_id):
            group = self._group_or_none(group_id)
            if group is None:
                return self._fail(CommandStatus.GROUP_NOT_FOUND, group_id)
            consumer = group.add_consumer(self._topics(), self._partition_map())
            self.metrics.rebalances.labels(
                consumer_group=group.id, reason=RebalanceReason.CONSUMER_JOINED.value,
            ).inc()
            self._update_gauges()
            logger.info("consumer_joined", group_id=group.id, consumer_id=consumer.id)
            return self._ok(consumer.id)

    def remove_consumer(self, group_id: str, consumer_id: str) -> CommandResult:
        with self._span("remove_consumer", group_id=group_id, consumer_id=consumer_id):
            group = self._group_or_none(group_id)
            if group is None:
                return self._fail(CommandStatus.GROUP_NOT_FOUND, group_id)
            if not group.remove_consumer(consumer_id, self._topics(), self._partition_map()):
                return self._fail(CommandStatus.CONSUMER_NOT_FOUND, consumer_id)
            self.metrics.rebalances.labels(
                consumer_group=group.id, reason=RebalanceReason.CONSUMER_LEFT.value,
            ).inc()
            self._update_gauges()
            logger.info("consumer_left", group_id=group.id, consumer_id=consumer_id)
            return self._ok(consumer_id)

    def crash_consumer(self, group_id: str, consumer_id: str) -> CommandResult:
        """Crash a consumer; its partitions move to the survivors."""
        with self._span("crash_consumer", group_id=group_id, consumer_id=consumer_id):
            group = self._group_or_none(group_id)
            if group is None:
                return self._fail(CommandStatus.GROUP_NOT_FOUND, group_id)
            if not group.crash_consumer(consumer_id, self._topics(), self._partition_map()):
                return self._fail(CommandStatus.CONSUMER_NOT_FOUND, consumer_id)
            self.metrics.rebalances.labels(
                consumer_group=group.id, reason=RebalanceReason.CONSUMER_CRASHED.value,
            ).inc()
            self._update_gauges()
            logger.warning("consumer_crashed", group_id=group.id, consumer_id=consumer_id)
            return self._ok(consumer_id)

    def set_assignor_strategy(self, group_id: str, strategy: str) -> CommandResult:
        with self._span("set_assignor_strategy", group_id=group_id, strategy=strategy):
            group = self._group_or_none(group_id)
            if group is None:
                return self._fail(CommandStatus.GROUP_NOT_FOUND, group_id)
            try:
                assignor = AssignorStrategy(strategy)
            except ValueError:
                return self._fail(CommandStatus.INVALID_ARGUMENT, strategy)
            group.set_strategy(assignor, self._topics(), self._partition_map())
            self.metrics.rebalances.labels(
                consumer_group=group.id, reason=RebalanceReason.STRATEGY_CHANGED.value,
            ).inc()
            logger.info("group_strategy_changed", group_id=group.id, strategy=assignor.value)
            return self._ok(self._group_ownership(group))

    def poll_group(self, group_id: str) -> CommandResult:
        """Run one poll on every alive consumer of a group.

        Returns:
            Consumer id -> list of ``PollBatch``.
        """
        with self._span("poll_group", group_id=group_id):
            group = self._group_or_none(group_id)
            if group is None:
                return self._fail(CommandStatus.GROUP_NOT_FOUND, group_id)
            commits_before = sum(c.total_committed for c in group.consumers)
            batches = group.poll_all(self._partition_map())
            polled = sum(len(b) for per_consumer in batches.values() for b in per_consumer)
            commits = sum(c.total_committed for c in group.consumers) - commits_before
            self.metrics.records_polled.labels(consumer_group=group.id).inc(polled)
            if commits:
                self.metrics.offset_commits.labels(consumer_group=group.id).inc(commits)
            self._update_group_gauges(group)
            logger.debug("group_polled", group_id=group.id, records=polled)
            return self._ok(batches)

    def commit_group(self, group_id: str) -> CommandResult:
        """Commit current positions of every alive consumer in a group."""
        with self._span("commit_group", group_id=group_id):
            group = self._group_or_none(group_id)
            if group is None:
                return self._fail(CommandStatus.GROUP_NOT_FOUND, group_id)
            committed = group.commit_all()
            if committed:
                self.metrics.offset_commits.labels(consumer_group=group.id).inc(committed)
            self._update_group_gauges(group)
            logger.debug("group_committed", group_id=group.id, consumers=committed)
            return self._ok(committed)

    # ------------------------------------------------------------------
    # Ticking and scheduling
    # ------------------------------------------------------------------

    def tick(self) -> CommandResult:
        """Advance replication one round and record a metrics sample.

        Consumers left in ``committing`` by the previous poll return to
        ``idle`` here.

        Returns:
            The recorded ``MetricsSample``.
        """
        with self._span("tick", tick=self.tick_count):
            emitted = self.replication.tick()
            for event in emitted:
                if event.kind == ISR_SHRINK:
                    self.metrics.isr_shrinks.labels(topic=event.topic).inc()
                elif event.kind == ISR_EXPAND:
                    self.metrics.isr_expands.labels(topic=event.topic).inc()

            for group in self.coordinator.get_all_groups():
                for consumer in group.consumers:
                    consumer.settle()

            partition_map = self._partition_map()
            sample = MetricsSample(
                tick=self.tick_count,
                throughput=self.producer.total_sent,
                lag=sum(
                    entry["total_lag"]
                    for group in self.coordinator.get_all_groups()
                    for entry in group.get_lag_report(partition_map)
                ),
                rebalances=self.coordinator.total_rebalances,
                isr_health=self.replication.isr_health_score,
            )
            self.metrics_history.append(sample)
            self.tick_count += 1
            self.metrics.ticks.inc()
            self._update_gauges()
            if emitted:
                logger.info("isr_changed", tick=sample.tick, events=len(emitted))
            return self._ok(sample)

    def start(self) -> None:
        """Register the periodic jobs; ``advance`` drives them."""
        if self.is_running:
            return
        sim_cfg = self.config.simulation
        self.scheduler.schedule(REPLICATION_JOB, sim_cfg.tick_interval_ms, self.tick)
        if sim_cfg.auto_produce_count > 0:
            self.scheduler.schedule(
                AUTO_PRODUCE_JOB,
                sim_cfg.auto_produce_interval_ms,
                lambda: self.produce_messages(sim_cfg.auto_produce_count),
            )
        self.scheduler.schedule(POLL_JOB, sim_cfg.poll_interval_ms, self._poll_all_groups)
        self.is_running = True
        logger.info("simulation_started", now_ms=self.scheduler.now_ms)

    def stop(self) -> None:
        if not self.is_running:
            return
        self.scheduler.cancel_all()
        self.is_running = False
        logger.info("simulation_stopped", now_ms=self.scheduler.now_ms)

    def toggle_simulation(self) -> bool:
        """Start or stop the periodic jobs.

        Returns:
            Whether the simulation is now running.
        """
        if self.is_running:
            self.stop()
        else:
            self.start()
        return self.is_running

    def advance(self, elapsed_ms: int) -> int:
        """Move virtual time forward; nothing runs while stopped.

        Returns:
            Number of job executions.
        """
        if not self.is_running:
            return 0
        return self.scheduler.advance(elapsed_ms)

    def _poll_all_groups(self) -> None:
        for group in self.coordinator.get_all_groups():
            self.poll_group(group.id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def ownership_map(self, group_id: str) -> Optional[dict[str, str]]:
        """``"topic:partition"`` -> consumer id, or None for an unknown group."""
        group = self._group_or_none(group_id)
        return self._group_ownership(group) if group is not None else None

    def lag_report(self, group_id: str) -> Optional[list[LagEntry]]:
        """Per-consumer lag of a group, or None for an unknown group."""
        group = self._group_or_none(group_id)
        if group is None:
            return None
        return self._lag_entries(group, self._partition_map())

    def get_history(self) -> list[MetricsSample]:
        return list(self.metrics_history)

    def snapshot(self) -> ClusterSnapshot:
        """Build an immutable view of the whole session."""
        partition_map = self._partition_map()
        events = [
            EventView("producer", e.kind, e.message, e.timestamp)
            for e in self.producer.events.to_list(SNAPSHOT_EVENT_LIMIT)
        ] + [
            EventView("replication", e.kind, e.message, e.timestamp)
            for e in self.replication.events.to_list(SNAPSHOT_EVENT_LIMIT)
        ]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return ClusterSnapshot(
            revision=self._revision,
            tick_count=self.tick_count,
            is_running=self.is_running,
            controller_id=self.cluster.controller_id,
            selected_topic=self.selected_topic,
            isr_health=self.replication.isr_health_score,
            brokers=tuple(self._broker_view(b) for b in self.cluster.brokers),
            topics=tuple(self._topic_view(t) for t in self._topics()),
            groups=tuple(
                self._group_view(g, partition_map) for g in self.coordinator.get_all_groups()
            ),
            producers=tuple(self._producer_view(p) for p in self.producers),
            under_replicated=tuple(self.replication.get_under_replicated()),
            offline_partitions=tuple(p.key for p in self.cluster.offline_partitions()),
            events=tuple(events),
        )

    def _broker_view(self, broker) -> BrokerView:
        return BrokerView(
            broker_id=broker.id,
            host=broker.host,
            port=broker.port,
            is_alive=broker.is_alive,
            is_controller=broker.id == self.cluster.controller_id,
            partition_count=broker.partition_count,
            load=broker.load,
        )

    def _topic_view(self, topic: Topic) -> TopicView:
        return TopicView(
            name=topic.name,
            replication_factor=topic.replication_factor,
            total_messages=topic.total_messages,
            partitions=tuple(
                PartitionView(
                    topic=topic.name,
                    partition_id=p.id,
                    leader_id=p.leader_id,
                    replica_ids=tuple(p.replica_ids),
                    isr_ids=tuple(p.isr_ids),
                    next_offset=p.next_offset,
                    high_watermark=p.high_watermark,
                    retained=len(p.log),
                    is_offline=p.is_offline,
                    is_under_replicated=p.is_under_replicated(topic.replication_factor),
                )
                for p in topic.partitions
            ),
        )

    @staticmethod
    def _producer_view(producer: Producer) -> ProducerView:
        return ProducerView(
            producer_id=producer.id,
            topic_name=producer.topic_name,
            acks=producer.acks.label,
            idempotent=producer.idempotent,
            retries=producer.retries,
            batch_size=producer.batch_size,
            linger_ms=producer.linger_ms,
            compression_type=producer.compression_type.value,
            total_sent=producer.total_sent,
            total_failed=producer.total_failed,
            last_latency_ms=producer.last_latency_ms,
            latency_label=producer.latency_label,
            durability_label=producer.durability_label,
        )

    @staticmethod
    def _consumer_view(consumer: Consumer) -> ConsumerView:
        return ConsumerView(
            consumer_id=consumer.id,
            status=consumer.status.value,
            is_alive=consumer.is_alive,
            assigned_partitions=tuple(tp.key for tp in consumer.assigned_partitions),
            current_offsets=dict(consumer.current_offsets),
            committed_offsets=dict(consumer.committed_offsets),
            total_polled=consumer.total_polled,
            total_committed=consumer.total_committed,
            total_lag=consumer.total_lag,
            events=tuple(
                EventView(f"consumer:{consumer.id}", e.kind, e.message, e.timestamp)
                for e in consumer.events.to_list(SNAPSHOT_EVENT_LIMIT)
            ),
        )

    @staticmethod
    def _group_ownership(group: ConsumerGroup) -> dict[str, str]:
        return group.get_ownership_map()

    @staticmethod
    def _lag_entries(group: ConsumerGroup, partition_map) -> list[LagEntry]:
        return [
            LagEntry(
                consumer_id=entry["consumer_id"],
                total_lag=entry["total_lag"],
                partitions=tuple(tp.key for tp in entry["partitions"]),
            )
            for entry in group.get_lag_report(partition_map)
        ]

    def _group_view(self, group: ConsumerGroup, partition_map) -> GroupView:
        return GroupView(
            group_id=group.id,
            strategy=group.assignor_strategy.value,
            state=group.state.value,
            generation=group.generation,
            topic_names=tuple(group.topic_names),
            consumers=tuple(self._consumer_view(c) for c in group.consumers),
            ownership=self._group_ownership(group),
            idle_consumers=tuple(c.id for c in group.idle_consumers),
            active_consumers=tuple(c.id for c in group.active_consumers),
            lag=tuple(self._lag_entries(group, partition_map)),
            rebalance_log=tuple(group.rebalance_events.to_list()),
        )

    # ------------------------------------------------------------------
    # Gauges
    # ------------------------------------------------------------------

    def _update_group_gauges(self, group: ConsumerGroup, partition_map=None) -> None:
        partition_map = partition_map if partition_map is not None else self._partition_map()
        lag = sum(entry["total_lag"] for entry in group.get_lag_report(partition_map))
        self.metrics.consumer_lag.labels(consumer_group=group.id).set(lag)
        self.metrics.consumers_active.labels(consumer_group=group.id).set(len(group.active_consumers))
        self.metrics.consumers_idle.labels(consumer_group=group.id).set(len(group.idle_consumers))

    def _update_gauges(self) -> None:
        partition_map = self._partition_map()
        self.metrics.brokers_alive.set(len(self.cluster.alive_brokers))
        self.metrics.offline_partitions.set(len(self.cluster.offline_partitions()))
        self.metrics.under_replicated_partitions.set(len(self.replication.get_under_replicated()))
        self.metrics.isr_health.set(self.replication.isr_health_score)
        self.metrics.consumer_groups.set(len(self.coordinator.groups))
        for group in self.coordinator.get_all_groups():
            self._update_group_gauges(group, partition_map)

    def to_dict(self) -> dict:
        """Snapshot as plain data (JSON friendly)."""
        return asdict(self.snapshot())
