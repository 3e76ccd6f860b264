"""Append-only log storage for a single queue."""

import logging
import os
import threading
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, Tuple

from .errors import FormatError, FormatErrorKind, ShortReadError
from .record import (
    RECORD_HEADER_SIZE,
    RecordPointer,
    read_file_header,
    read_record_header,
    write_file_header,
    write_record,
)


logger = logging.getLogger(__name__)

LOG_SUFFIX = ".log"


class QueueLog:
    """One append-only log file plus the in-memory index of its records.

    ``index[i]`` points at the payload of message ``i + 1``. The index is
    never persisted: it is rebuilt from the file by :meth:`recover`.

    Appends are serialized by a per-log lock. Reads take no lock; they use
    positioned reads on pointers already published in the index.
    """

    def __init__(
        self,
        name: str,
        path: Path,
        file: BinaryIO,
        index: Optional[Iterable[RecordPointer]] = None,
        fsync: bool = True,
    ) -> None:
        self.name = name
        self._path = Path(path)
        self._file = file
        self._index: List[RecordPointer] = list(index or [])
        self._fsync = fsync
        self._lock = threading.Lock()

    @classmethod
    def create(cls, name: str, path: Path, fsync: bool = True) -> "QueueLog":
        """Create a new log file and write its header.

        Raises FileExistsError if ``path`` already exists. On any other
        failure the half-created file is removed.
        """
        path = Path(path)
        file = open(path, "xb+", buffering=0)
        try:
            write_file_header(file)
            if fsync:
                os.fsync(file.fileno())
                fsync_directory(path.parent)
        except BaseException:
            file.close()
            try:
                os.unlink(path)
            except OSError:
                logger.exception(f"Could not remove half-created queue file {path}")
            raise
        logger.info(f"Created queue '{name}' at {path}")
        return cls(name, path, file, fsync=fsync)

    @classmethod
    def recover(cls, path: Path, name: Optional[str] = None, fsync: bool = True) -> "QueueLog":
        """Open an existing log file and rebuild its index by scanning it.

        Raises FormatError if the file header or any record is malformed,
        or if a record extends past the end of the file.
        """
        path = Path(path)
        if name is None:
            name = path.name[: -len(LOG_SUFFIX)] if path.name.endswith(LOG_SUFFIX) else path.name
        file = open(path, "rb+", buffering=0)
        try:
            index = list(scan(file, str(path)))
        except BaseException:
            file.close()
            raise
        logger.debug(f"Recovered queue '{name}' with {len(index)} messages")
        return cls(name, path, file, index, fsync=fsync)

    def append(self, payload: bytes) -> int:
        """Append a message and return its 1-based sequence number."""
        with self._lock:
            start = os.fstat(self._file.fileno()).st_size
            try:
                pointer = write_record(self._file, payload)
                if self._fsync:
                    os.fsync(self._file.fileno())
            except OSError:
                logger.exception(
                    f"Append to queue '{self.name}' failed at offset {start}"
                )
                self._rollback(start)
                raise
            self._index.append(pointer)
            return len(self._index)

    def _rollback(self, size: int) -> None:
        """Drop any partially written record beyond ``size``."""
        try:
            os.ftruncate(self._file.fileno(), size)
        except OSError:
            logger.exception(f"Could not truncate {self._path} back to {size} bytes")

    def read(self, seq: int) -> Optional[bytes]:
        """Read message ``seq`` (1-based). Returns None if out of range."""
        index = self._index
        if seq < 1 or seq > len(index):
            return None
        pointer = index[seq - 1]

        length = read_record_header(
            self._file, pointer.offset - RECORD_HEADER_SIZE, str(self._path)
        )
        if length != pointer.size:
            raise FormatError(
                FormatErrorKind.LENGTH_MISMATCH,
                f"record header says {length} bytes, index says {pointer.size}",
                path=str(self._path),
                offset=pointer.offset - RECORD_HEADER_SIZE,
            )

        data = os.pread(self._file.fileno(), pointer.size, pointer.offset)
        if len(data) < pointer.size:
            raise ShortReadError(str(self._path), pointer.offset, pointer.size, len(data))
        return data

    @property
    def index(self) -> Tuple[RecordPointer, ...]:
        """Snapshot of the record pointers, in append order."""
        return tuple(self._index)

    @property
    def path(self) -> Path:
        return self._path

    def message_count(self) -> int:
        """Return the number of messages in the log."""
        return len(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def close(self) -> None:
        """Close the log file."""
        with self._lock:
            self._file.close()


def fsync_directory(path: Path) -> None:
    """Persist directory entries, such as a newly created log file."""
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def scan(file: BinaryIO, path: str) -> Iterable[RecordPointer]:
    """Walk a log file from its header forward, yielding record pointers.

    Every record must be complete; a truncated tail is a format error.
    """
    size = os.fstat(file.fileno()).st_size
    cursor = read_file_header(file, path)
    while cursor < size:
        length = read_record_header(file, cursor, path)
        start = cursor + RECORD_HEADER_SIZE
        if start + length > size:
            raise FormatError(
                FormatErrorKind.TRUNCATED_RECORD,
                f"record claims {length} bytes, only {size - start} available",
                path=path,
                offset=cursor,
            )
        yield RecordPointer(offset=start, size=length)
        cursor = start + length
