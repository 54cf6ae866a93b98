"""Generate random events, stream them over TCP as length-prefixed JSON, and process them with duplicate detection."""

__version__ = "0.1.0"