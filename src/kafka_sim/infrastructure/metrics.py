"""Prometheus metrics for the Kafka simulator."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Info, CollectorRegistry, REGISTRY


class SimulationMetrics:
    """Metrics collector for the simulation engine."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self._registry = registry or REGISTRY
        registry = self._registry

        # Producer Metrics
        self.messages_produced = Counter(
            "kafka_sim_messages_produced_total",
            "Total messages appended by producers",
            ["topic", "acks"],
            registry=registry,
        )
        self.produce_errors = Counter(
            "kafka_sim_produce_errors_total",
            "Total failed produce calls",
            ["topic", "error_type"],
            registry=registry,
        )
        self.produce_latency = Histogram(
            "kafka_sim_produce_latency_seconds",
            "Simulated producer ack latency",
            ["acks"],
            buckets=[0.001, 0.002, 0.005, 0.01, 0.02, 0.05, 0.1],
            registry=registry,
        )

        # Consumer Metrics
        self.records_polled = Counter(
            "kafka_sim_records_polled_total",
            "Total records returned by consumer polls",
            ["consumer_group"],
            registry=registry,
        )
        self.offset_commits = Counter(
            "kafka_sim_offset_commits_total",
            "Total consumer offset commits",
            ["consumer_group"],
            registry=registry,
        )
        self.consumer_lag = Gauge(
            "kafka_sim_consumer_lag",
            "Consumer group lag behind log end",
            ["consumer_group"],
            registry=registry,
        )
        self.consumers_active = Gauge(
            "kafka_sim_consumers_active",
            "Consumers holding at least one partition",
            ["consumer_group"],
            registry=registry,
        )
        self.consumers_idle = Gauge(
            "kafka_sim_consumers_idle",
            "Alive consumers holding no partition",
            ["consumer_group"],
            registry=registry,
        )

        # Consumer Group Metrics
        self.consumer_groups = Gauge(
            "kafka_sim_consumer_groups",
            "Number of registered consumer groups",
            registry=registry,
        )
        self.rebalances = Counter(
            "kafka_sim_rebalances_total",
            "Total consumer group rebalances",
            ["consumer_group", "reason"],
            registry=registry,
        )

        # Cluster Metrics
        self.brokers_alive = Gauge(
            "kafka_sim_brokers_alive",
            "Number of alive brokers",
            registry=registry,
        )
        self.leader_elections = Counter(
            "kafka_sim_leader_elections_total",
            "Partition leader elections",
            ["result"],
            registry=registry,
        )
        self.offline_partitions = Gauge(
            "kafka_sim_offline_partitions",
            "Partitions without a leader",
            registry=registry,
        )

        # ISR Metrics
        self.isr_shrinks = Counter(
            "kafka_sim_isr_shrinks_total",
            "Total ISR shrink events",
            ["topic"],
            registry=registry,
        )
        self.isr_expands = Counter(
            "kafka_sim_isr_expands_total",
            "Total ISR expand events",
            ["topic"],
            registry=registry,
        )
        self.under_replicated_partitions = Gauge(
            "kafka_sim_under_replicated_partitions",
            "Number of under-replicated partitions",
            registry=registry,
        )
        self.isr_health = Gauge(
            "kafka_sim_isr_health_score",
            "Percentage of partitions with a full ISR",
            registry=registry,
        )

        # Session Metrics
        self.revision = Gauge(
            "kafka_sim_revision",
            "State revision counter",
            registry=registry,
        )
        self.ticks = Counter(
            "kafka_sim_ticks_total",
            "Simulation ticks executed",
            registry=registry,
        )

        # System Info
        self.system_info = Info(
            "kafka_sim",
            "Kafka simulator information",
            registry=registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry


_metrics: SimulationMetrics | None = None


def get_metrics() -> SimulationMetrics:
    """Get the singleton metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = SimulationMetrics()
    return _metrics
