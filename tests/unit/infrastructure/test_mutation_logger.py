"""
Unit tests for infrastructure/logger.py - MutationLogger and EventBuffer
"""
import logging

from infrastructure.logger import (
    EventBuffer,
    LoggerConfig,
    MutationEvent,
    MutationLogger,
    MutationType,
)


def make_event(sequence, node_id=None, mutation_type=MutationType.NODE_CREATED):
    return MutationEvent(
        timestamp=f"2024-01-01T00:00:{sequence:02d}+00:00",
        sequence=sequence,
        mutation_type=mutation_type.value,
        node_id=node_id,
    )


def test_buffer_is_a_ring():
    buffer = EventBuffer(max_size=3)
    for i in range(5):
        buffer.append(make_event(i))

    assert len(buffer) == 3
    assert [e.sequence for e in buffer.get_last(10)] == [2, 3, 4]
    assert [e.sequence for e in buffer.get_last(2)] == [3, 4]
    assert buffer.get_last(0) == []


def test_buffer_queries():
    buffer = EventBuffer()
    buffer.append(make_event(1, node_id=1))
    buffer.append(make_event(2, node_id=2, mutation_type=MutationType.NODE_DELETED))

    assert [e.sequence for e in buffer.get_by_node(2)] == [2]
    assert [e.sequence for e in buffer.get_by_type("NODE_DELETED")] == [2]
    assert [e.sequence for e in buffer.get_since("2024-01-01T00:00:02+00:00")] == [2]


def test_sequence_survives_clear():
    buffer = EventBuffer()
    buffer.next_sequence()
    buffer.clear()

    assert buffer.next_sequence() == 2


def test_logger_records_events():
    log = MutationLogger()

    created = log.log_node_created(7, parent_id=1)
    moved = log.log_node_moved(7, old_parent_id=1, new_parent_id=None)
    log.log_node_deleted(7, parent_id=None, cascade_size=2)

    assert created.sequence < moved.sequence
    assert len(log) == 3
    timeline = log.get_node_timeline(7)
    assert [t["type"] for t in timeline] == ["NODE_CREATED", "NODE_MOVED", "NODE_DELETED"]
    assert timeline[1]["old_parent"] == 1
    assert log.get_events_by_type(MutationType.NODE_DELETED)[0].cascade_size == 2


def test_disabled_logger_records_nothing():
    log = MutationLogger(LoggerConfig(enabled=False))

    assert log.log_rejected(1, "DuplicateId", "Item with id 1 already exists") is None
    assert len(log) == 0
    assert not log.enabled


def test_subscribers_receive_events():
    log = MutationLogger()
    received = []
    log.subscribe(received.append)

    log.log_node_updated("a")
    log.unsubscribe(received.append)
    log.log_node_updated("b")

    assert [e.node_id for e in received] == ["a"]


def test_failing_subscriber_does_not_propagate(caplog):
    log = MutationLogger()

    def broken(event):
        raise RuntimeError("boom")

    log.subscribe(broken)
    with caplog.at_level(logging.ERROR, logger="infrastructure.logger"):
        event = log.log_node_created(1)

    assert event is not None
    assert len(log) == 1
    assert "Mutation subscriber failed" in caplog.text
