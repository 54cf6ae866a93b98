"""The event record exchanged between client and server."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from eventrelay.errors import ErrorFlag, EventRelayError

PORT = 8068
UUID_LEN = 37
DATE_LEN = 30
BUFFER_SIZE = 99
HIT_PROBABILITY = 40


@dataclass(frozen=True)
class Event:
    """A single event: identifier, timestamp and a 0/1 status."""

    id: str
    date: str
    status: int

    def to_dict(self) -> dict[str, Any]:
        """Return the event as a JSON-ready mapping in wire field order."""
        return {"id": self.id, "date": self.date, "status": self.status}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Event":
        """Build an event from a decoded JSON object.

        Identifier and date are cut to their fixed field widths; a status
        that is not an integer reads as 0.
        """
        if not isinstance(data, Mapping):
            raise EventRelayError(ErrorFlag.PARSE_ERROR, "event is not an object")
        event_id = data.get("id")
        date = data.get("date")
        if not isinstance(event_id, str) or not isinstance(date, str):
            raise EventRelayError(ErrorFlag.PARSE_ERROR, "event id and date must be strings")
        status = data.get("status")
        if not isinstance(status, int) or isinstance(status, bool):
            status = 0
        return cls(event_id[: UUID_LEN - 1], date[: DATE_LEN - 1], status)