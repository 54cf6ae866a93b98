"""Command that accepts clients and processes their event streams."""

from __future__ import annotations

import argparse
import sys
import threading

from eventrelay.errors import ErrorFlag, EventRelayError, format_errors
from eventrelay.events import PORT
from eventrelay.server import ClientSession, setup_server_socket


def serve(port: int = PORT) -> None:
    """Listen on ``port`` and handle each client on its own thread, forever."""
    with setup_server_socket(port) as server:
        print(f"Server started on port {port}", flush=True)
        print("Waiting for connections...", flush=True)
        while True:
            try:
                conn, (client_ip, client_port) = server.accept()
            except OSError as exc:
                raise EventRelayError(ErrorFlag.SOCKET_ERROR, f"accept failed: {exc}") from exc
            print(f"New connection from {client_ip}:{client_port}", flush=True)
            worker = threading.Thread(target=ClientSession(conn).run, daemon=True)
            try:
                worker.start()
            except RuntimeError as exc:
                print(f"cannot start client thread: {exc}", file=sys.stderr)
                conn.close()


def main(argv: list[str] | None = None) -> int:
    """Run the event server until interrupted."""
    parser = argparse.ArgumentParser(description="Receive and process event batches.")
    parser.add_argument("--port", type=int, default=PORT, help="port to listen on")
    args = parser.parse_args(argv)
    try:
        serve(args.port)
    except EventRelayError as exc:
        sys.stderr.write(format_errors(exc.flag))
        sys.stderr.write(f"{exc}\n")
        return 1
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":
    sys.exit(main())