"""Command that generates event batches and streams them to the server."""

from __future__ import annotations

import argparse
import random
import sys
import time

from eventrelay.client import (
    EventBuffer,
    connect_to_server,
    events_to_json,
    generate_event,
    random_num,
    send_json_data,
)
from eventrelay.errors import EventRelayError, format_errors
from eventrelay.events import PORT, Event

SERVER_IP = "127.0.0.1"
DUPLICATE_EVERY = 100


class EventGenerator:
    """Produces batches of events where every hundredth is a repeat."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng
        self.buffer = EventBuffer(rng=rng)
        self.counter = 0

    def next_batch(self, count: int) -> list[Event]:
        """Generate ``count`` events, drawing every hundredth from the buffer."""
        batch = []
        for _ in range(count):
            self.counter += 1
            if self.counter % DUPLICATE_EVERY == 0:
                batch.append(self.buffer.pick())
            else:
                event = generate_event(self._rng)
                self.buffer.offer(event)
                batch.append(event)
        return batch


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send random event batches to the server.")
    parser.add_argument("--host", default=SERVER_IP, help="server IPv4 address")
    parser.add_argument("--port", type=int, default=PORT, help="server port")
    parser.add_argument("--batches", type=int, default=None, help="stop after this many batches")
    parser.add_argument("--seed", type=int, default=None, help="random seed")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Connect to the server and send batches until stopped."""
    args = _parse_args(argv)
    rng = random.Random(args.seed)
    generator = EventGenerator(rng)
    try:
        with connect_to_server(args.host, args.port) as sock:
            sent = 0
            while args.batches is None or sent < args.batches:
                interval_ms = random_num(1, 1000, rng)
                count = random_num(1, 1000, rng)
                events = generator.next_batch(count)
                print(f"Generated {count} events. Next batch in {interval_ms} ms")
                send_json_data(sock, events_to_json(events))
                print("Data was sent.")
                sent += 1
                if args.batches is None or sent < args.batches:
                    time.sleep(interval_ms / 1000)
    except EventRelayError as exc:
        sys.stderr.write(format_errors(exc.flag))
        sys.stderr.write(f"{exc}\n")
        return 1
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())