"""Unit tests for consumer groups and the group coordinator."""

import pytest

from kafka_sim.domain.entities.message import Message
from kafka_sim.domain.services.cluster import Cluster
from kafka_sim.domain.services.consumer_group import ConsumerGroup
from kafka_sim.domain.services.group_coordinator import GroupCoordinator
from kafka_sim.domain.value_objects.simulation_types import GroupState, RebalanceReason


@pytest.fixture
def cluster() -> Cluster:
    cluster = Cluster(broker_count=3)
    cluster.create_topic("orders", 3, 2)
    cluster.create_topic("payments", 2, 2)
    return cluster


def _topics(cluster):
    return list(cluster.topics.values())


def _ownership_is_exclusive(group: ConsumerGroup) -> bool:
    owned = [tp for tps in group.assignment.values() for tp in tps]
    return len(owned) == len(set(owned))


@pytest.mark.unit
class TestMembership:
    """Test joins, leaves and crashes."""

    def test_join_triggers_rebalance(self, cluster):
        """Test each join rebalances the group."""
        group = ConsumerGroup("g", ["orders"], "round-robin")
        a = group.add_consumer(_topics(cluster), cluster.partition_map())
        b = group.add_consumer(_topics(cluster), cluster.partition_map())

        assert group.rebalance_count == 2
        assert group.generation == 2
        assert group.state is GroupState.STABLE
        assert group.get_ownership_map() == {
            "orders:0": a.id, "orders:1": b.id, "orders:2": a.id,
        }
        assert group.rebalance_events.latest().reason == RebalanceReason.CONSUMER_JOINED.value

    def test_only_subscribed_topics_are_assigned(self, cluster):
        """Test unsubscribed topics are left out."""
        group = ConsumerGroup("g", ["payments"])
        group.add_consumer(_topics(cluster), cluster.partition_map())
        assert set(group.get_ownership_map()) == {"payments:0", "payments:1"}

    def test_crash_moves_partitions_to_survivors(self, cluster):
        """Test a crashed consumer's partitions are reassigned."""
        group = ConsumerGroup("g", ["orders"], "range")
        a = group.add_consumer(_topics(cluster), cluster.partition_map())
        b = group.add_consumer(_topics(cluster), cluster.partition_map())

        assert group.crash_consumer(a.id, _topics(cluster), cluster.partition_map())

        assert not a.is_alive
        assert group.get_consumer(a.id) is None
        assert set(group.get_ownership_map().values()) == {b.id}
        assert group.rebalance_events.latest().reason == RebalanceReason.CONSUMER_CRASHED.value

    def test_remove_unknown_consumer_is_noop(self, cluster):
        """Test removing a non-member changes nothing."""
        group = ConsumerGroup("g", ["orders"])
        group.add_consumer(_topics(cluster), cluster.partition_map())

        assert not group.remove_consumer("ghost", _topics(cluster), cluster.partition_map())
        assert not group.crash_consumer("ghost", _topics(cluster), cluster.partition_map())
        assert group.rebalance_count == 1

    def test_idle_and_active_consumers(self, cluster):
        """Test consumers beyond the partition count are idle."""
        group = ConsumerGroup("g", ["payments"], "round-robin")
        for _ in range(4):
            group.add_consumer(_topics(cluster), cluster.partition_map())

        assert len(group.active_consumers) == 2
        assert len(group.idle_consumers) == 2
        assert _ownership_is_exclusive(group)

    def test_subscribe_then_rebalance(self, cluster):
        """Test a new subscription is picked up on the next rebalance."""
        group = ConsumerGroup("g", ["orders"])
        group.add_consumer(_topics(cluster), cluster.partition_map())

        assert group.subscribe("payments")
        assert not group.subscribe("payments")
        group.rebalance(_topics(cluster), cluster.partition_map(), RebalanceReason.SUBSCRIPTION_CHANGED)
        assert len(group.get_ownership_map()) == 5

    def test_set_strategy(self, cluster):
        """Test switching assignor rebalances with it."""
        group = ConsumerGroup("g", ["orders"], "round-robin")
        a = group.add_consumer(_topics(cluster), cluster.partition_map())
        b = group.add_consumer(_topics(cluster), cluster.partition_map())

        group.set_strategy("range", _topics(cluster), cluster.partition_map())

        assert group.get_ownership_map() == {
            "orders:0": a.id, "orders:1": a.id, "orders:2": b.id,
        }
        assert group.previous_assignment == group.assignment

    def test_sticky_minimises_movement(self, cluster):
        """Test sticky keeps surviving owners in place."""
        group = ConsumerGroup("g", ["orders", "payments"], "sticky")
        consumers = [group.add_consumer(_topics(cluster), cluster.partition_map()) for _ in range(3)]
        before = group.get_ownership_map()

        group.remove_consumer(consumers[2].id, _topics(cluster), cluster.partition_map())
        after = group.get_ownership_map()

        for key, owner in before.items():
            if owner != consumers[2].id:
                assert after[key] == owner


@pytest.mark.unit
class TestGroupQueries:
    """Test lag and poll helpers."""

    def test_lag_report_and_poll_all(self, cluster):
        """Test lag drops to zero after an auto-committing poll."""
        group = ConsumerGroup(
            "g", ["orders"], "round-robin",
            consumer_defaults={"auto_offset_reset": "earliest"},
        )
        group.add_consumer(_topics(cluster), cluster.partition_map())
        for i in range(6):
            cluster.get_topic("orders").partitions[i % 3].append(Message(value=i))

        report = group.get_lag_report(cluster.partition_map())
        assert [entry["total_lag"] for entry in report] == [6]

        batches = group.poll_all(cluster.partition_map())
        assert sum(len(b) for per in batches.values() for b in per) == 6
        assert [e["total_lag"] for e in group.get_lag_report(cluster.partition_map())] == [0]

    def test_commit_all_counts_alive(self, cluster):
        """Test commit_all commits every alive consumer."""
        group = ConsumerGroup("g", ["orders"])
        for _ in range(2):
            group.add_consumer(_topics(cluster), cluster.partition_map())
        assert group.commit_all() == 2
        assert group.size() == 2


@pytest.mark.unit
class TestGroupCoordinator:
    """Test the group registry."""

    def test_create_get_remove(self):
        """Test group lifecycle."""
        coordinator = GroupCoordinator()
        group = coordinator.create_group("g1", ["orders"], "sticky")

        assert coordinator.get_group("g1") is group
        assert coordinator.get_all_groups() == [group]
        assert coordinator.remove_group("g1")
        assert not coordinator.remove_group("g1")
        assert coordinator.get_group("g1") is None

    def test_rebalance_all(self, cluster):
        """Test every group rebalances on a topology change."""
        coordinator = GroupCoordinator()
        for gid in ("a", "b"):
            coordinator.create_group(gid, ["orders"]).add_consumer(
                _topics(cluster), cluster.partition_map(),
            )

        coordinator.rebalance_all(_topics(cluster), cluster.partition_map())

        assert coordinator.total_rebalances == 4
        assert all(
            g.rebalance_events.latest().reason == RebalanceReason.TOPOLOGY_CHANGED.value
            for g in coordinator.get_all_groups()
        )

    def test_consumer_defaults_apply(self, cluster):
        """Test new members inherit the coordinator defaults."""
        coordinator = GroupCoordinator(consumer_defaults={"max_poll_records": 7})
        consumer = coordinator.create_group("g", ["orders"]).add_consumer(
            _topics(cluster), cluster.partition_map(),
        )
        assert consumer.max_poll_records == 7
