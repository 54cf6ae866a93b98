# eventrelay

Two small programs that stream events over TCP.

- **The client** (`eventrelay-client`) makes batches of random events. Each
  event has a UUID, a local timestamp and a status of 0 or 1. A batch holds
  between 1 and 1000 events. The client sends each batch to the server as
  one JSON document, then waits between 1 and 1000 ms before the next one.
  Every hundredth event repeats an earlier one. The repeat comes from a ring
  buffer of 99 past events. Until the buffer first wraps, it keeps every new
  event. After that it keeps a new event with a 40% chance. This is how the
  server receives duplicates.
- **The server** (`eventrelay-server`) accepts connections and handles each
  client on its own thread. It reads length-prefixed JSON frames and puts
  the events in a bounded queue of 1000. When the queue is full, new events
  are dropped. A worker thread takes the events one at a time. For each one
  it waits a random 10–500 ms to simulate work, then prints running metrics.

## Wire format

Each message starts with a 4-byte big-endian length. The UTF-8 JSON body
follows:

```json
{"events":[{"id":"…","date":"YYYY-MM-DD HH:MM:SS","status":0}]}
```

When the server parses an event, it cuts the `id` to 36 characters and the
`date` to 29. A `status` that is not an integer is read as 0. Entries in the
`events` array that are not objects are skipped. If a frame fails to parse,
the server reports the error and moves on to the next frame.

## Installation

```
pip install .
```

## Usage

Start the server. It listens on port 8068 on all interfaces:

```
eventrelay-server
eventrelay-server --port 9000
```

In another terminal, start the client:

```
eventrelay-client
```

By default the client connects to `127.0.0.1:8068` and sends batches until
you stop it. It has these options:

- `--host ADDRESS` sets the server's IPv4 address.
- `--port N` sets the server's port.
- `--batches N` makes the client stop after N batches.
- `--seed N` seeds the random generator, so runs can be repeated.

The server prints a line like this for each event it processes:

```
|Processed: 42| Duplicates: 1| AvgTime: 251.37ms|
```

## Library use

```python
import random
from eventrelay.client import events_to_json, encode_frame
from eventrelay.client_main import EventGenerator
from eventrelay.server import EventQueue, Metrics, parse_events_array

gen = EventGenerator(random.Random(1))
batch = gen.next_batch(5)
payload = events_to_json(batch)        # compact {"events":[...]} JSON
frame = encode_frame(payload)          # length prefix + JSON bytes
events = parse_events_array(payload)   # back to Event objects
```

The package has these modules:

- `eventrelay.events` defines the `Event` dataclass, with `to_dict` and
  `from_dict`.
- `eventrelay.client` provides `EventBuffer`, `generate_event`,
  `connect_to_server` and `send_json_data`.
- `eventrelay.server` provides `EventQueue`, `Metrics`, `read_frames`,
  `setup_server_socket` and `ClientSession`. `ClientSession.run` serves one
  connection and returns its `Metrics` when the client disconnects.

Failures raise `eventrelay.errors.EventRelayError`. The error carries an
`ErrorFlag` that says what kind of failure happened. `format_errors` renders
a set of flags as red terminal lines.

## Limits

- The server keeps duplicate tracking and metrics per connection, in
  memory only. Nothing is stored, and nothing is shared between clients.
- Processing only simulates work with a delay. The server sends nothing
  back to the client.
- The client accepts IPv4 addresses only, not host names.

## Running the tests

```
pip install .[test]
pytest
```