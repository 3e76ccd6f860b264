"""Storage layer for LogQueue."""

from .errors import FormatError, FormatErrorKind, ShortReadError
from .log import QueueLog
from .record import RecordPointer
from .store import QueueStore, canonical_name

__all__ = [
    "FormatError",
    "FormatErrorKind",
    "ShortReadError",
    "QueueLog",
    "RecordPointer",
    "QueueStore",
    "canonical_name",
]
