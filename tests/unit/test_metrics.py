"""Unit tests for Prometheus metrics wiring."""

import pytest
from prometheus_client import CollectorRegistry

from kafka_sim.infrastructure.metrics import SimulationMetrics


@pytest.mark.unit
class TestSimulationMetrics:
    """Test the metrics collector."""

    def test_isolated_registries(self):
        """Test two collectors on separate registries do not clash."""
        first = SimulationMetrics(CollectorRegistry())
        second = SimulationMetrics(CollectorRegistry())

        first.messages_produced.labels(topic="orders", acks="1").inc()

        assert first.registry.get_sample_value(
            "kafka_sim_messages_produced_total", {"topic": "orders", "acks": "1"}
        ) == 1.0
        assert second.registry.get_sample_value(
            "kafka_sim_messages_produced_total", {"topic": "orders", "acks": "1"}
        ) is None

    def test_boot_gauges(self, simulation, registry):
        """Test gauges reflect the booted session."""
        assert registry.get_sample_value("kafka_sim_brokers_alive") == 3.0
        assert registry.get_sample_value("kafka_sim_isr_health_score") == 100.0
        assert registry.get_sample_value("kafka_sim_consumer_groups") == 1.0
        assert registry.get_sample_value("kafka_sim_offline_partitions") == 0.0

    def test_produce_counts(self, simulation, registry):
        """Test successful produces are counted with latency."""
        simulation.produce_messages(4)

        assert registry.get_sample_value(
            "kafka_sim_messages_produced_total", {"topic": "orders", "acks": "1"}
        ) == 4.0
        assert registry.get_sample_value(
            "kafka_sim_produce_latency_seconds_count", {"acks": "1"}
        ) == 4.0

    def test_leader_election_counts(self, simulation, registry):
        """Test kills record elections and move gauges."""
        simulation.kill_broker(0)

        # broker 0 leads orders:0 and payments:0
        assert registry.get_sample_value(
            "kafka_sim_leader_elections_total", {"result": "elected"}
        ) == 2.0
        assert registry.get_sample_value("kafka_sim_brokers_alive") == 2.0
        assert registry.get_sample_value("kafka_sim_under_replicated_partitions") == 3.0

    def test_revision_gauge(self, simulation, registry):
        """Test the revision gauge follows the session."""
        simulation.add_broker()
        simulation.tick()
        assert registry.get_sample_value("kafka_sim_revision") == 2.0

    def test_poll_and_commit_counts(self, simulation, registry):
        """Test polled records and auto-commits are counted."""
        simulation.produce_messages(6)
        simulation.poll_group("group-alpha")

        assert registry.get_sample_value(
            "kafka_sim_records_polled_total", {"consumer_group": "group-alpha"}
        ) == 6.0
        assert registry.get_sample_value(
            "kafka_sim_offset_commits_total", {"consumer_group": "group-alpha"}
        ) == 2.0
        assert registry.get_sample_value(
            "kafka_sim_consumer_lag", {"consumer_group": "group-alpha"}
        ) == 0.0
