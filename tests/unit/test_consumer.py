"""Unit tests for the consumer entity."""

import pytest

from kafka_sim.domain.entities.consumer import Consumer
from kafka_sim.domain.entities.message import Message
from kafka_sim.domain.entities.partition import Partition
from kafka_sim.domain.value_objects.identifiers import TopicPartition
from kafka_sim.domain.value_objects.simulation_types import ConsumerStatus, OffsetReset


def _partition(pid: int, messages: int) -> Partition:
    partition = Partition(pid, "t", leader_id=0, replica_ids=[0])
    for i in range(messages):
        partition.append(Message(value=f"m{i}"))
    return partition


def _map(*partitions: Partition) -> dict:
    return {p.key: p for p in partitions}


@pytest.mark.unit
class TestOffsetReset:
    """Test start positions on assignment."""

    def test_earliest_starts_at_zero(self):
        """Test earliest starts from the beginning of the log."""
        consumer = Consumer("g", auto_offset_reset=OffsetReset.EARLIEST)
        consumer.assign_partitions([TopicPartition("t", 0)], _map(_partition(0, 5)))
        assert consumer.current_offsets == {"t:0": 0}

    def test_latest_skips_history(self):
        """Test latest starts at the log end."""
        consumer = Consumer("g", auto_offset_reset="latest")
        consumer.assign_partitions([TopicPartition("t", 0)], _map(_partition(0, 5)))
        assert consumer.current_offsets == {"t:0": 5}

    def test_none_falls_back_to_latest(self):
        """Test none behaves like latest."""
        consumer = Consumer("g", auto_offset_reset="none")
        consumer.assign_partitions([TopicPartition("t", 0)], _map(_partition(0, 3)))
        assert consumer.current_offsets == {"t:0": 3}

    def test_reassignment_keeps_position(self):
        """Test known partitions keep their offset across rebalances."""
        p0 = _partition(0, 5)
        consumer = Consumer("g", auto_offset_reset="earliest")
        consumer.assign_partitions([TopicPartition("t", 0)], _map(p0))
        consumer.poll(_map(p0))

        consumer.assign_partitions([TopicPartition("t", 0)], _map(p0))
        assert consumer.current_offsets["t:0"] == 5


@pytest.mark.unit
class TestPoll:
    """Test the poll loop."""

    def test_first_poll_returns_all_messages(self):
        """Test earliest consumer reads five messages in one batch."""
        p0 = _partition(0, 5)
        consumer = Consumer("g", auto_offset_reset="earliest")
        consumer.assign_partitions([TopicPartition("t", 0)], _map(p0))

        batches = consumer.poll(_map(p0))

        assert len(batches) == 1
        assert [m.offset for m in batches[0].messages] == [0, 1, 2, 3, 4]
        assert consumer.current_offsets["t:0"] == 5
        assert consumer.total_polled == 5

    def test_auto_commit_after_poll(self):
        """Test auto-commit commits the polled position."""
        p0 = _partition(0, 3)
        consumer = Consumer("g", auto_offset_reset="earliest")
        consumer.assign_partitions([TopicPartition("t", 0)], _map(p0))
        consumer.poll(_map(p0))

        assert consumer.committed_offsets == {"t:0": 3}
        assert consumer.status is ConsumerStatus.COMMITTING
        consumer.settle()
        assert consumer.status is ConsumerStatus.IDLE

    def test_manual_commit(self):
        """Test disabled auto-commit leaves uncommitted lag."""
        p0 = _partition(0, 3)
        consumer = Consumer("g", auto_offset_reset="earliest", enable_auto_commit=False)
        consumer.assign_partitions([TopicPartition("t", 0)], _map(p0))
        consumer.poll(_map(p0))

        assert consumer.status is ConsumerStatus.PROCESSING
        assert consumer.total_lag == 3
        consumer.commit()
        assert consumer.total_lag == 0
        assert consumer.total_committed == 1

    def test_max_poll_records_spans_partitions(self):
        """Test the record cap is shared across partitions."""
        p0, p1 = _partition(0, 3), _partition(1, 3)
        consumer = Consumer(
            "g", auto_offset_reset="earliest", max_poll_records=4, enable_auto_commit=False,
        )
        consumer.assign_partitions([TopicPartition("t", 0), TopicPartition("t", 1)], _map(p0, p1))

        batches = consumer.poll(_map(p0, p1))

        assert [len(b) for b in batches] == [3, 1]
        assert consumer.current_offsets == {"t:0": 3, "t:1": 1}

    def test_empty_poll_stays_idle(self):
        """Test an empty poll does not commit."""
        p0 = _partition(0, 0)
        consumer = Consumer("g")
        consumer.assign_partitions([TopicPartition("t", 0)], _map(p0))

        assert consumer.poll(_map(p0)) == []
        assert consumer.status is ConsumerStatus.IDLE
        assert consumer.total_committed == 0

    def test_crashed_and_paused_consumers_do_not_poll(self):
        """Test dead or paused consumers return nothing."""
        p0 = _partition(0, 2)
        consumer = Consumer("g", auto_offset_reset="earliest")
        consumer.assign_partitions([TopicPartition("t", 0)], _map(p0))

        consumer.pause()
        assert consumer.poll(_map(p0)) == []
        consumer.resume()

        consumer.crash()
        assert consumer.status is ConsumerStatus.CRASHED
        assert consumer.poll(_map(p0)) == []

        consumer.recover()
        assert len(consumer.poll(_map(p0))) == 1

    def test_current_never_trails_committed(self):
        """Test read position stays at or ahead of committed position."""
        p0 = _partition(0, 4)
        consumer = Consumer("g", auto_offset_reset="earliest", max_poll_records=1)
        consumer.assign_partitions([TopicPartition("t", 0)], _map(p0))
        for _ in range(6):
            consumer.poll(_map(p0))
            for key, committed in consumer.committed_offsets.items():
                assert consumer.current_offsets[key] >= committed


@pytest.mark.unit
class TestLag:
    """Test lag calculations."""

    def test_get_lag_from_log_end(self):
        """Test lag counts uncommitted messages in the partition."""
        p0 = _partition(0, 6)
        consumer = Consumer("g", auto_offset_reset="earliest", max_poll_records=2)
        consumer.assign_partitions([TopicPartition("t", 0)], _map(p0))

        assert consumer.get_lag("t", 0, p0) == 6
        consumer.poll(_map(p0))
        assert consumer.get_lag("t", 0, p0) == 4

    def test_get_lag_without_partition(self):
        """Test lag on an unknown partition is zero."""
        assert Consumer("g").get_lag("t", 9, None) == 0
