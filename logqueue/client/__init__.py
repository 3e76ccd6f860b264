"""Client SDK for LogQueue."""

from .client import LogQueueClient, LogQueueError, QueueNotFoundError

__all__ = ["LogQueueClient", "LogQueueError", "QueueNotFoundError"]
