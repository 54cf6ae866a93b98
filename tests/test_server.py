import random
import socket
import threading
import time

import pytest

from eventrelay.client import encode_frame, events_to_json
from eventrelay.errors import ErrorFlag, EventRelayError
from eventrelay.events import UUID_LEN, Event
from eventrelay.server import (
    ClientSession,
    EventQueue,
    Metrics,
    parse_event,
    parse_events_array,
    read_frames,
    setup_server_socket,
)


def _event(n):
    return Event(f"00000000-0000-0000-0000-{n:012d}", "2024-01-01 00:00:00", n % 2)


def test_metrics_format_worked_example():
    metrics = Metrics()
    metrics.record(10, False)
    metrics.record(30, True)
    assert metrics.format() == "|Processed: 2| Duplicates: 1| AvgTime: 20.00ms|"


def test_metrics_format_when_empty():
    assert Metrics().format() == "|Processed: 0| Duplicates: 0| AvgTime: 0.00ms|"


def test_metrics_totals_follow_records():
    durations = [12, 480, 77, 250]
    flags = [False, True, True, False]
    metrics = Metrics()
    for duration, duplicate in zip(durations, flags):
        metrics.record(duration, duplicate)
    assert metrics.total_processed == len(durations)
    assert metrics.total_duplicates == sum(flags)
    assert metrics.total_time_ms == pytest.approx(sum(durations))
    assert metrics.average_ms == pytest.approx(sum(durations) / len(durations))


def test_queue_is_fifo_and_tracks_length():
    queue = EventQueue()
    events = [_event(i) for i in range(3)]
    for event in events:
        assert queue.push(event) is True
    assert len(queue) == 3
    assert [queue.pop() for _ in events] == events
    assert len(queue) == 0


def test_queue_rejects_when_full():
    queue = EventQueue(2)
    assert queue.push(_event(1))
    assert queue.push(_event(2))
    assert queue.push(_event(3)) is False
    assert len(queue) == 2
    assert queue.pop() == _event(1)


def test_queue_pop_times_out_on_empty():
    queue = EventQueue()
    start = time.monotonic()
    assert queue.pop(timeout=0.05) is None
    assert time.monotonic() - start < 2


def test_queue_pop_waits_for_push():
    queue = EventQueue()
    event = _event(7)
    timer = threading.Timer(0.05, queue.push, args=(event,))
    timer.start()
    try:
        assert queue.pop(timeout=5) == event
    finally:
        timer.join()


def test_queue_invalid_size():
    with pytest.raises(EventRelayError) as info:
        EventQueue(0)
    assert info.value.flag is ErrorFlag.SIZE_ERROR


def test_queue_rejects_missing_event():
    with pytest.raises(EventRelayError) as info:
        EventQueue().push(None)
    assert info.value.flag is ErrorFlag.PTR_ERROR


def test_parse_events_array_round_trip():
    events = [_event(i) for i in range(5)]
    assert parse_events_array(events_to_json(events)) == events


def test_parse_events_array_accepts_bytes():
    events = [_event(1), _event(2)]
    assert parse_events_array(events_to_json(events).encode("utf-8")) == events


def test_parse_events_array_skips_non_objects():
    text = '{"events":[1,"x",{"id":"a","date":"b","status":1},null]}'
    assert parse_events_array(text) == [Event("a", "b", 1)]


@pytest.mark.parametrize(
    "text",
    ["not json", '{"items":[]}', '{"events":{}}', "[1,2]"],
)
def test_parse_events_array_errors(text):
    with pytest.raises(EventRelayError) as info:
        parse_events_array(text)
    assert info.value.flag is ErrorFlag.PARSE_ERROR


def test_parse_event_truncates_id():
    event = parse_event({"id": "x" * 50, "date": "2024-01-01 00:00:00", "status": 1})
    assert len(event.id) == UUID_LEN - 1
    assert event.status == 1


def test_parse_event_missing_id():
    with pytest.raises(EventRelayError) as info:
        parse_event({"date": "2024-01-01 00:00:00", "status": 0})
    assert info.value.flag is ErrorFlag.PARSE_ERROR


def test_parse_event_none():
    with pytest.raises(EventRelayError) as info:
        parse_event(None)
    assert info.value.flag is ErrorFlag.PTR_ERROR


def test_read_frames_yields_payloads():
    writer, reader = socket.socketpair()
    payloads = ["first", "", "third payload"]
    with writer:
        writer.sendall(b"".join(encode_frame(p) for p in payloads))
    with reader:
        assert list(read_frames(reader)) == [p.encode() for p in payloads]


def test_read_frames_truncated_payload():
    writer, reader = socket.socketpair()
    with writer:
        writer.sendall(encode_frame("hello")[:-2])
    with reader, pytest.raises(EventRelayError) as info:
        list(read_frames(reader))
    assert info.value.flag is ErrorFlag.READ_ERROR


def test_read_frames_truncated_header():
    writer, reader = socket.socketpair()
    with writer:
        writer.sendall(b"\x00\x00")
    with reader, pytest.raises(EventRelayError) as info:
        list(read_frames(reader))
    assert info.value.flag is ErrorFlag.READ_ERROR


def test_setup_server_socket_accepts_connections():
    with setup_server_socket(0) as server:
        port = server.getsockname()[1]
        assert port > 0
        with socket.create_connection(("127.0.0.1", port), timeout=5) as client:
            conn, peer = server.accept()
            with conn:
                assert peer == client.getsockname()


def test_setup_server_socket_port_in_use():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as occupier:
        occupier.bind(("", 0))
        occupier.listen(1)
        port = occupier.getsockname()[1]
        with pytest.raises(EventRelayError) as info:
            setup_server_socket(port)
    assert info.value.flag is ErrorFlag.SOCKET_ERROR


def test_process_event_detects_duplicates(capsys):
    writer, reader = socket.socketpair()
    delays = []
    with writer, reader:
        session = ClientSession(reader, rng=random.Random(1), delay=delays.append)
        assert session.process_event(_event(1)) is False
        assert session.process_event(_event(2)) is False
        assert session.process_event(_event(1)) is True
    assert session.metrics.total_processed == 3
    assert session.metrics.total_duplicates == 1
    assert session.processed == {_event(1).id, _event(2).id}
    assert all(0.010 <= d <= 0.5 for d in delays)
    assert session.metrics.total_time_ms == pytest.approx(sum(d * 1000 for d in delays))
    assert session.metrics.format() in capsys.readouterr().out


def test_run_processes_all_frames(capsys):
    writer, reader = socket.socketpair()
    first = [_event(i) for i in range(3)]
    second = [_event(3), _event(4), _event(0)]
    with writer:
        writer.sendall(encode_frame(events_to_json(first)))
        writer.sendall(encode_frame("not json"))
        writer.sendall(encode_frame(events_to_json(second)))
    session = ClientSession(reader, rng=random.Random(2), delay=lambda seconds: None)
    metrics = session.run()
    assert metrics.total_processed == len(first) + len(second)
    assert metrics.total_duplicates == 1
    assert session.processed == {e.id for e in first + second}
    assert reader.fileno() == -1
    assert "PARSE_ERROR" in capsys.readouterr().err