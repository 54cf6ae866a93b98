"""Event generation, buffering and sending for the client side."""

from __future__ import annotations

import ipaddress
import json
import random
import socket
import struct
import time
import uuid
from typing import Iterable

from eventrelay.errors import ErrorFlag, EventRelayError
from eventrelay.events import BUFFER_SIZE, HIT_PROBABILITY, Event

_LENGTH = struct.Struct("!I")


def current_time() -> str:
    """Local time as 'YYYY-MM-DD HH:MM:SS'."""
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())


def generate_uuid() -> str:
    """A random UUID in canonical text form."""
    return str(uuid.uuid4())


def random_num(left: int, right: int, rng: random.Random | None = None) -> int:
    """A random integer in the closed range [left, right]."""
    return (rng or random).randint(left, right)


def generate_event(rng: random.Random | None = None) -> Event:
    """A fresh event with a new id, the current time and a random status."""
    return Event(generate_uuid(), current_time(), random_num(0, 1, rng))


class EventBuffer:
    """Ring buffer of past events used to produce deliberate duplicates.

    Until it has wrapped once every offered event is kept; afterwards an
    offered event is kept only with ``hit_probability`` percent chance.
    """

    def __init__(
        self,
        capacity: int = BUFFER_SIZE,
        hit_probability: int = HIT_PROBABILITY,
        rng: random.Random | None = None,
    ) -> None:
        if capacity <= 0:
            raise EventRelayError(ErrorFlag.SIZE_ERROR, "buffer capacity must be positive")
        self.capacity = capacity
        self.hit_probability = hit_probability
        self._rng = rng
        self._slots: list[Event | None] = [None] * capacity
        self._ip = 0
        self.full = False

    def add(self, event: Event) -> None:
        """Store an event, overwriting the oldest once the buffer wraps."""
        if self._ip == self.capacity:
            self.full = True
            self._ip = 0
        self._slots[self._ip] = event
        self._ip += 1

    def offer(self, event: Event) -> bool:
        """Store the event subject to the hit probability; report whether it was kept."""
        if self.full and random_num(1, 100, self._rng) > self.hit_probability:
            return False
        self.add(event)
        return True

    def pick(self) -> Event:
        """A random stored event."""
        if not len(self):
            raise EventRelayError(ErrorFlag.SIZE_ERROR, "event buffer is empty")
        index = random_num(0, len(self) - 1, self._rng)
        event = self._slots[index]
        assert event is not None
        return event

    def __len__(self) -> int:
        return self.capacity if self.full else self._ip


def events_to_json(events: Iterable[Event]) -> str:
    """Serialise events as compact '{"events":[...]}' JSON."""
    return json.dumps(
        {"events": [event.to_dict() for event in events]},
        separators=(",", ":"),
        ensure_ascii=False,
    )


def encode_frame(payload: str | bytes) -> bytes:
    """Prefix the payload with its length as a 4-byte big-endian integer."""
    data = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
    return _LENGTH.pack(len(data)) + data


def connect_to_server(host: str, port: int) -> socket.socket:
    """Open a TCP connection to an IPv4 server address."""
    if host is None:
        raise EventRelayError(ErrorFlag.IP_ERROR, "no server address given")
    if not 0 < port <= 65535:
        raise EventRelayError(ErrorFlag.PORT_ERROR, f"invalid port {port}")
    try:
        ipaddress.IPv4Address(host)
    except ValueError as exc:
        raise EventRelayError(ErrorFlag.IP_ERROR, f"invalid IPv4 address {host!r}") from exc
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    except OSError as exc:
        raise EventRelayError(ErrorFlag.SOCKET_ERROR, str(exc)) from exc
    try:
        sock.connect((host, port))
    except OSError as exc:
        sock.close()
        raise EventRelayError(ErrorFlag.CONNECT_ERROR, f"cannot connect to {host}:{port}: {exc}") from exc
    return sock


def send_json_data(sock: socket.socket, json_data: str | bytes) -> None:
    """Send one length-prefixed JSON frame."""
    if json_data is None:
        raise EventRelayError(ErrorFlag.PTR_ERROR, "no data to send")
    try:
        sock.sendall(encode_frame(json_data))
    except OSError as exc:
        raise EventRelayError(ErrorFlag.SEND_ERROR, str(exc)) from exc