"""Integration tests for the simulation session."""

import random

import pytest
from prometheus_client import CollectorRegistry

from kafka_sim.application.simulation import Simulation
from kafka_sim.domain.value_objects.simulation_types import CommandStatus, ConsumerStatus
from kafka_sim.infrastructure.config import (
    Config,
    ConsumerConfig,
    GroupConfig,
    SimulationConfig,
)
from kafka_sim.infrastructure.container import Container
from kafka_sim.infrastructure.metrics import SimulationMetrics


def _make(config: Config) -> Simulation:
    return Simulation(config=config, metrics=SimulationMetrics(CollectorRegistry()), rng=random.Random(3))


def _group(sim: Simulation, group_id: str):
    return next(g for g in sim.snapshot().groups if g.group_id == group_id)


def _partition(sim: Simulation, topic: str, pid: int):
    topic_view = next(t for t in sim.snapshot().topics if t.name == topic)
    return topic_view.partitions[pid]


@pytest.mark.integration
class TestBoot:
    """Test the default session."""

    def test_default_topology(self, simulation):
        """Test brokers, topics and the default group."""
        snapshot = simulation.snapshot()

        assert [b.broker_id for b in snapshot.brokers] == [0, 1, 2]
        assert snapshot.controller_id == 0
        assert [t.name for t in snapshot.topics] == ["orders", "payments"]
        assert snapshot.selected_topic == "orders"
        assert snapshot.revision == 0

        group = _group(simulation, "group-alpha")
        assert group.strategy == "round-robin"
        assert len(group.consumers) == 2
        first, second = (c.consumer_id for c in group.consumers)
        assert group.ownership == {"orders:0": first, "orders:1": second, "orders:2": first}

    def test_round_robin_placement(self, simulation):
        """Test orders partitions are led by brokers 0, 1, 2 with two replicas."""
        orders = next(t for t in simulation.snapshot().topics if t.name == "orders")
        assert [p.leader_id for p in orders.partitions] == [0, 1, 2]
        assert all(len(p.replica_ids) == 2 for p in orders.partitions)


@pytest.mark.integration
class TestScenarios:
    """End-to-end scenarios."""

    def test_create_topic_placement(self, simulation):
        """Test a new topic is placed round-robin and assigned to groups."""
        result = simulation.create_topic("clicks", 3, 2)

        assert result.ok
        assert [p.leader_id for p in result.value.partitions] == [0, 1, 2]
        assert [len(p.replica_ids) for p in result.value.partitions] == [2, 2, 2]
        ownership = simulation.ownership_map("group-alpha")
        assert {"clicks:0", "clicks:1", "clicks:2"} <= set(ownership)

    def test_same_key_same_partition(self, simulation):
        """Test a key is routed to the same partition every time."""
        first = simulation.produce("a", key="user-1")
        second = simulation.produce("b", key="user-1")

        assert first.value.partition_id == second.value.partition_id == 1
        assert second.value.offset == first.value.offset + 1

    def test_single_partition_four_consumers(self, simulation):
        """Test one partition and four consumers leaves three idle."""
        simulation.create_topic("single", 1, 1)
        group_id = simulation.create_group("solo", ["single"], "round-robin").value
        for _ in range(3):
            simulation.add_consumer(group_id)

        group = _group(simulation, group_id)
        assert len(group.consumers) == 4
        assert len(group.active_consumers) == 1
        assert len(group.idle_consumers) == 3
        assert list(group.ownership) == ["single:0"]

    def test_leader_failover(self, simulation):
        """Test killing leader 0 of ISR [0,1,2] elects 1 and shrinks the ISR."""
        simulation.create_topic("replicated", 1, 3)
        assert _partition(simulation, "replicated", 0).isr_ids == (0, 1, 2)

        result = simulation.kill_broker(0)

        partition = _partition(simulation, "replicated", 0)
        assert result.ok
        assert partition.leader_id == 1
        assert partition.isr_ids == (1, 2)
        assert all(
            p.leader_id != 0 for t in simulation.snapshot().topics for p in t.partitions
        )

    def test_earliest_consumer_reads_history(self):
        """Test an earliest consumer gets five messages in one poll."""
        sim = _make(Config(
            consumer=ConsumerConfig(auto_offset_reset="earliest"),
            group=GroupConfig(default_consumer_count=0),
        ))
        sim.create_topic("single", 1, 1)
        for i in range(5):
            sim.produce(f"m{i}", topic="single")
        group_id = sim.create_group("readers", ["single"]).value

        batches = sim.poll_group(group_id).value

        (consumer_id, per_consumer), = batches.items()
        assert len(per_consumer) == 1
        assert [m.offset for m in per_consumer[0].messages] == [0, 1, 2, 3, 4]
        consumer = _group(sim, group_id).consumers[0]
        assert consumer.current_offsets == {"single:0": 5}

    def test_restart_recovers_offline_partition(self, simulation):
        """Test restarting a replica of an offline partition elects it."""
        simulation.kill_broker(0)
        simulation.kill_broker(1)
        assert _partition(simulation, "payments", 0).is_offline
        assert "payments:0" in simulation.snapshot().offline_partitions

        simulation.restart_broker(0)

        partition = _partition(simulation, "payments", 0)
        assert partition.leader_id == 0
        assert 0 in partition.isr_ids


@pytest.mark.integration
class TestCommands:
    """Test command results and revision bookkeeping."""

    def test_each_mutation_bumps_revision_once(self, simulation):
        """Test revision moves by exactly one per successful command."""
        group_id = "group-alpha"
        consumer_id = _group(simulation, group_id).consumers[0].consumer_id
        commands = [
            lambda: simulation.create_topic("clicks", 2, 1),
            lambda: simulation.select_topic("clicks"),
            lambda: simulation.add_broker(),
            lambda: simulation.kill_broker(3),
            lambda: simulation.restart_broker(3),
            lambda: simulation.produce("v"),
            lambda: simulation.produce_messages(3),
            lambda: simulation.burst(4, key_prefix="k"),
            lambda: simulation.set_producer_config(acks="all"),
            lambda: simulation.add_consumer(group_id),
            lambda: simulation.set_assignor_strategy(group_id, "sticky"),
            lambda: simulation.poll_group(group_id),
            lambda: simulation.commit_group(group_id),
            lambda: simulation.crash_consumer(group_id, consumer_id),
            lambda: simulation.tick(),
            lambda: simulation.create_group("beta", ["orders"], "range"),
            lambda: simulation.remove_group("beta"),
        ]
        for expected, command in enumerate(commands, start=1):
            result = command()
            assert result.ok, result
            assert result.revision == expected == simulation.revision

    def test_rejected_commands_keep_revision(self, simulation):
        """Test failures report a status and change nothing."""
        simulation.create_topic("clicks", 1, 1)
        before = simulation.revision

        cases = [
            (simulation.create_topic("clicks", 1, 1), CommandStatus.TOPIC_EXISTS),
            (simulation.create_topic("bad", 0, 1), CommandStatus.INVALID_ARGUMENT),
            (simulation.create_topic("bad", 1, 0), CommandStatus.INVALID_ARGUMENT),
            (simulation.select_topic("missing"), CommandStatus.TOPIC_NOT_FOUND),
            (simulation.kill_broker(42), CommandStatus.BROKER_NOT_FOUND),
            (simulation.restart_broker(42), CommandStatus.BROKER_NOT_FOUND),
            (simulation.produce("v", topic="missing"), CommandStatus.TOPIC_NOT_FOUND),
            (simulation.burst(-1), CommandStatus.INVALID_ARGUMENT),
            (simulation.set_producer_config(acks=2), CommandStatus.INVALID_ARGUMENT),
            (simulation.set_producer_config(compression_type="brotli"), CommandStatus.INVALID_ARGUMENT),
            (simulation.set_producer_config(colour="red"), CommandStatus.INVALID_ARGUMENT),
            (simulation.set_producer_config(topic_name="missing"), CommandStatus.TOPIC_NOT_FOUND),
            (simulation.create_group("x", ["orders"], "random"), CommandStatus.INVALID_ARGUMENT),
            (simulation.remove_group("missing"), CommandStatus.GROUP_NOT_FOUND),
            (simulation.add_consumer("missing"), CommandStatus.GROUP_NOT_FOUND),
            (simulation.remove_consumer("group-alpha", "ghost"), CommandStatus.CONSUMER_NOT_FOUND),
            (simulation.crash_consumer("group-alpha", "ghost"), CommandStatus.CONSUMER_NOT_FOUND),
            (simulation.set_assignor_strategy("group-alpha", "random"), CommandStatus.INVALID_ARGUMENT),
            (simulation.poll_group("missing"), CommandStatus.GROUP_NOT_FOUND),
            (simulation.commit_group("missing"), CommandStatus.GROUP_NOT_FOUND),
        ]
        for result, expected in cases:
            assert result.status is expected
            assert result.revision == before
        assert simulation.revision == before
        assert len(simulation.snapshot().topics) == 3

    def test_duplicate_group_id_is_disambiguated(self, simulation):
        """Test a duplicate id gets a timestamp suffix."""
        result = simulation.create_group("group-alpha", ["orders"])

        assert result.ok
        assert result.value.startswith("group-alpha-")
        assert {g.group_id for g in simulation.snapshot().groups} == {"group-alpha", result.value}
        assert len(_group(simulation, "group-alpha").consumers) == 2

    def test_select_topic_subscribes_groups(self, simulation):
        """Test selecting a topic makes every group consume it."""
        simulation.select_topic("payments")

        assert simulation.snapshot().selected_topic == "payments"
        assert len(simulation.ownership_map("group-alpha")) == 5
        assert simulation.produce("v").value.message.partition_id in (0, 1)

    def test_set_producer_config(self, simulation):
        """Test producer settings update partially."""
        result = simulation.set_producer_config(acks="all", idempotent=True)

        assert result.value.acks == "all"
        assert result.value.idempotent
        assert result.value.durability_label.startswith("Strong")
        produced = simulation.produce("v", key="user-1").value
        assert produced.message.sequence_number == 0

    def test_crash_moves_ownership(self, simulation):
        """Test the survivor owns every partition after a crash."""
        first, second = (c.consumer_id for c in _group(simulation, "group-alpha").consumers)

        simulation.crash_consumer("group-alpha", first)

        assert set(simulation.ownership_map("group-alpha").values()) == {second}

    def test_consumer_events_in_snapshot(self, simulation):
        """Test poll and commit entries reach the consumer views."""
        simulation.produce_messages(6)
        simulation.poll_group("group-alpha")

        first = _group(simulation, "group-alpha").consumers[0]
        assert [e.kind for e in first.events[:2]] == ["commit", "poll"]
        assert {e.source for e in first.events} == {f"consumer:{first.consumer_id}"}

    def test_tick_settles_committing_consumers(self, simulation):
        """Test consumers return to idle on the next tick."""
        simulation.produce_messages(6)
        simulation.poll_group("group-alpha")
        assert {c.status for c in _group(simulation, "group-alpha").consumers} == {
            ConsumerStatus.COMMITTING.value,
        }

        simulation.tick()

        assert {c.status for c in _group(simulation, "group-alpha").consumers} == {
            ConsumerStatus.IDLE.value,
        }

    def test_lag_report(self, simulation):
        """Test lag grows with produce and drops after poll."""
        simulation.produce_messages(6)
        assert sum(e.total_lag for e in simulation.lag_report("group-alpha")) == 6

        simulation.poll_group("group-alpha")
        assert sum(e.total_lag for e in simulation.lag_report("group-alpha")) == 0
        assert simulation.lag_report("missing") is None
        assert simulation.ownership_map("missing") is None

    def test_lag_non_negative(self, simulation):
        """Test current offsets never trail committed offsets."""
        simulation.produce_messages(10)
        simulation.poll_group("group-alpha")
        simulation.add_consumer("group-alpha")
        simulation.produce_messages(5)
        simulation.kill_broker(1)
        simulation.poll_group("group-alpha")
        simulation.commit_group("group-alpha")

        for group in simulation.snapshot().groups:
            for consumer in group.consumers:
                for key, committed in consumer.committed_offsets.items():
                    assert consumer.current_offsets[key] >= committed

    def test_snapshot_is_detached(self, simulation):
        """Test a snapshot does not change when the engine does."""
        snapshot = simulation.snapshot()
        simulation.produce_messages(3)
        simulation.kill_broker(0)

        orders = next(t for t in snapshot.topics if t.name == "orders")
        assert orders.total_messages == 0
        assert snapshot.brokers[0].is_alive
        assert simulation.to_dict()["revision"] == 2


@pytest.mark.integration
class TestTicksAndScheduling:
    """Test the tick loop and virtual clock."""

    def test_history_is_bounded(self):
        """Test only the newest samples are kept."""
        sim = _make(Config(simulation=SimulationConfig(metrics_history_size=3)))
        for _ in range(5):
            sim.tick()

        assert [s.tick for s in sim.get_history()] == [2, 3, 4]
        assert sim.tick_count == 5

    def test_sample_contents(self, simulation):
        """Test a sample carries throughput, lag, rebalances and health."""
        simulation.produce_messages(4)
        sample = simulation.tick().value

        assert sample.tick == 0
        assert sample.throughput == 4
        assert sample.lag == 4
        assert sample.rebalances == 2
        assert sample.isr_health == 100

    def test_scheduler_drives_jobs(self, simulation):
        """Test start/advance run tick, auto-produce and poll in order."""
        assert simulation.advance(1000) == 0

        assert simulation.toggle_simulation()
        executed = simulation.advance(1000)

        assert executed == 4
        assert simulation.producer.total_sent == 10
        assert simulation.tick_count == 1
        # the tick at 1000ms ran before that instant's auto-produce
        assert simulation.get_history()[0].throughput == 5
        assert sum(c.total_polled for c in _group(simulation, "group-alpha").consumers) == 10

        assert not simulation.toggle_simulation()
        assert simulation.advance(5000) == 0
        assert simulation.tick_count == 1


@pytest.mark.integration
class TestContainer:
    """Test dependency wiring."""

    def test_container_boots_simulation(self, container, test_config):
        """Test the container builds a session from its config."""
        assert container.config is test_config
        assert container.simulation.config is test_config
        assert Container.get() is container
        assert len(container.simulation.snapshot().brokers) == test_config.cluster.broker_count
