"""LogQueue: a durable, append-only HTTP message queue."""

__version__ = "0.1.0"
