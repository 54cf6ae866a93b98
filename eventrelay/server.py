"""Server side: frame reading, event parsing, the event queue and client sessions."""

from __future__ import annotations

import collections
import contextlib
import json
import random
import socket
import struct
import sys
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from eventrelay.client import random_num
from eventrelay.errors import ErrorFlag, EventRelayError, format_errors
from eventrelay.events import Event

MAX_QUEUE_SIZE = 1000
BACKLOG = 4
MIN_DELAY_MS = 10
MAX_DELAY_MS = 500

_LENGTH = struct.Struct("!I")
_POLL_SECONDS = 0.05


def _report(exc: EventRelayError) -> None:
    sys.stderr.write(format_errors(exc.flag))
    sys.stderr.write(f"{exc}\n")


@dataclass
class Metrics:
    """Running totals for the events a session has processed."""

    total_processed: int = 0
    total_duplicates: int = 0
    total_time_ms: float = 0.0

    def record(self, duration_ms: float, duplicate: bool) -> None:
        """Account for one processed event."""
        self.total_processed += 1
        self.total_time_ms += duration_ms
        if duplicate:
            self.total_duplicates += 1

    @property
    def average_ms(self) -> float:
        """Mean processing time, or 0.0 before anything was processed."""
        if not self.total_processed:
            return 0.0
        return self.total_time_ms / self.total_processed

    def format(self) -> str:
        """One status line with the processed, duplicate and average figures."""
        return (
            f"|Processed: {self.total_processed}"
            f"| Duplicates: {self.total_duplicates}"
            f"| AvgTime: {self.average_ms:.2f}ms|"
        )


class EventQueue:
    """Bounded, thread-safe FIFO of events waiting to be processed."""

    def __init__(self, maxsize: int = MAX_QUEUE_SIZE) -> None:
        if maxsize <= 0:
            raise EventRelayError(ErrorFlag.SIZE_ERROR, "queue size must be positive")
        self.maxsize = maxsize
        self._items: collections.deque[Event] = collections.deque()
        self._cond = threading.Condition()

    def push(self, event: Event) -> bool:
        """Append an event; return False and drop it when the queue is full."""
        if event is None:
            raise EventRelayError(ErrorFlag.PTR_ERROR, "cannot queue a missing event")
        with self._cond:
            if len(self._items) >= self.maxsize:
                return False
            self._items.append(event)
            self._cond.notify()
            return True

    def pop(self, timeout: float | None = None) -> Event | None:
        """Take the oldest event, waiting for one; None if the timeout runs out."""
        with self._cond:
            if not self._cond.wait_for(lambda: self._items, timeout):
                return None
            return self._items.popleft()

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)


def parse_event(obj: Any) -> Event:
    """Build an event from one decoded JSON object."""
    if obj is None:
        raise EventRelayError(ErrorFlag.PTR_ERROR, "no event object")
    return Event.from_dict(obj)


def parse_events_array(json_str: str | bytes) -> list[Event]:
    """Decode a '{"events": [...]}' document; entries that are not objects are skipped."""
    if json_str is None:
        raise EventRelayError(ErrorFlag.PTR_ERROR, "no JSON text")
    try:
        root = json.loads(json_str)
    except ValueError as exc:
        raise EventRelayError(ErrorFlag.PARSE_ERROR, f"invalid JSON: {exc}") from exc
    items = root.get("events") if isinstance(root, dict) else None
    if not isinstance(items, list):
        raise EventRelayError(ErrorFlag.PARSE_ERROR, "'events' array is missing")
    return [parse_event(item) for item in items if isinstance(item, dict)]


def setup_server_socket(port: int) -> socket.socket:
    """A TCP socket bound to all interfaces on ``port`` and listening."""
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    except OSError as exc:
        raise EventRelayError(ErrorFlag.SOCKET_ERROR, str(exc)) from exc
    if hasattr(socket, "SO_REUSEPORT"):
        with contextlib.suppress(OSError):
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
    try:
        sock.bind(("", port))
        sock.listen(BACKLOG)
    except OSError as exc:
        sock.close()
        raise EventRelayError(ErrorFlag.SOCKET_ERROR, f"cannot listen on port {port}: {exc}") from exc
    return sock


def _recv_exact(sock: socket.socket, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        try:
            chunk = sock.recv(size - len(data))
        except OSError as exc:
            raise EventRelayError(ErrorFlag.READ_ERROR, str(exc)) from exc
        if not chunk:
            break
        data += chunk
    return bytes(data)


def read_frames(sock: socket.socket) -> Iterator[bytes]:
    """Yield length-prefixed payloads until the peer closes the connection."""
    while True:
        header = _recv_exact(sock, _LENGTH.size)
        if not header:
            return
        if len(header) < _LENGTH.size:
            raise EventRelayError(ErrorFlag.READ_ERROR, "truncated length prefix")
        (length,) = _LENGTH.unpack(header)
        payload = _recv_exact(sock, length)
        if len(payload) != length:
            raise EventRelayError(
                ErrorFlag.READ_ERROR, f"expected {length} bytes, got {len(payload)}"
            )
        yield payload


class ClientSession:
    """Reads event batches from one client and processes them on a worker thread."""

    def __init__(
        self,
        sock: socket.socket,
        rng: random.Random | None = None,
        delay: Callable[[float], Any] = time.sleep,
    ) -> None:
        self.sock = sock
        self._rng = rng
        self._delay = delay
        self.queue = EventQueue()
        self.metrics = Metrics()
        self.processed: set[str] = set()
        self._metrics_lock = threading.Lock()
        self._reading = threading.Event()

    def process_event(self, event: Event) -> bool:
        """Simulate work on one event and update metrics; return whether it was a duplicate."""
        duplicate = event.id in self.processed
        interval_ms = random_num(MIN_DELAY_MS, MAX_DELAY_MS, self._rng)
        self._delay(interval_ms / 1000)
        with self._metrics_lock:
            self.metrics.record(interval_ms, duplicate)
            if not duplicate:
                self.processed.add(event.id)
            print(self.metrics.format(), flush=True)
        return duplicate

    def _process_loop(self) -> None:
        while True:
            event = self.queue.pop(_POLL_SECONDS)
            if event is None:
                if not self._reading.is_set():
                    return
                continue
            self.process_event(event)

    def run(self) -> Metrics:
        """Serve the connection until the client disconnects, then close it."""
        self._reading.set()
        processor = threading.Thread(target=self._process_loop, daemon=True)
        processor.start()
        try:
            with self.sock:
                for payload in read_frames(self.sock):
                    try:
                        events = parse_events_array(payload)
                    except EventRelayError as exc:
                        _report(exc)
                        continue
                    for event in events:
                        self.queue.push(event)
        except EventRelayError as exc:
            _report(exc)
        finally:
            self._reading.clear()
            processor.join()
        return self.metrics