"""Errors raised by the storage layer."""

from typing import Optional


class FormatErrorKind:
    """Format error kind constants."""

    BAD_FILE_HEADER = "bad-file-header"
    BAD_MAGIC = "bad-magic"
    BAD_TERMINATOR = "bad-terminator"
    TRUNCATED_RECORD = "truncated-record"
    LENGTH_MISMATCH = "length-mismatch"
    DUPLICATE_QUEUE = "duplicate-queue"


class FormatError(Exception):
    """Raised when persisted data does not match the log file format."""

    def __init__(
        self,
        kind: str,
        message: str,
        path: Optional[str] = None,
        offset: Optional[int] = None,
    ) -> None:
        self.kind = kind
        self.path = path
        self.offset = offset
        detail = f"{kind}: {message}"
        if path is not None:
            detail += f" (file {path}"
            if offset is not None:
                detail += f", offset {offset}"
            detail += ")"
        super().__init__(detail)


class ShortReadError(IOError):
    """Raised when a file holds fewer bytes than a record pointer claims."""

    def __init__(self, path: str, offset: int, expected: int, actual: int) -> None:
        self.path = path
        self.offset = offset
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"short read in {path} at offset {offset}: "
            f"expected {expected} bytes, got {actual}"
        )
